"""Content-aware tone shaping: three-band EQ plus one compressor.

Each content mode selects a fixed row from ``MODE_PRESETS``. When tone
preservation is on, every EQ gain is scaled by 0.3.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict

import numpy as np
from pedalboard import Compressor, HighShelfFilter, LowShelfFilter, Pedalboard, PeakFilter

from .biquad_eq import clamp_freq
from .buffer import WaveformBuffer
from .settings import CONTENT_MODES, ContentMode, ProcessingSettings
from .stage import Stage, render_board

PRESERVE_TONE_FACTOR = 0.3

_SHELF_Q = 0.707


@dataclass(frozen=True)
class TonePreset:
  low_shelf_hz: float
  low_gain_db: float
  mid_hz: float
  mid_gain_db: float
  mid_q: float
  high_shelf_hz: float
  high_gain_db: float
  threshold_db: float
  ratio: float
  attack_ms: float
  release_ms: float


MODE_PRESETS: Dict[ContentMode, TonePreset] = {
  "podcast": TonePreset(
    low_shelf_hz=200.0, low_gain_db=-2.0,
    mid_hz=2500.0, mid_gain_db=3.0, mid_q=1.0,
    high_shelf_hz=8000.0, high_gain_db=1.0,
    threshold_db=-20.0, ratio=4.0, attack_ms=3.0, release_ms=250.0,
  ),
  "vocal": TonePreset(
    low_shelf_hz=100.0, low_gain_db=-1.0,
    mid_hz=3000.0, mid_gain_db=2.0, mid_q=1.5,
    high_shelf_hz=10000.0, high_gain_db=1.5,
    threshold_db=-24.0, ratio=3.0, attack_ms=1.0, release_ms=200.0,
  ),
  "instrumental": TonePreset(
    low_shelf_hz=100.0, low_gain_db=1.0,
    mid_hz=1000.0, mid_gain_db=0.0, mid_q=1.0,
    high_shelf_hz=8000.0, high_gain_db=2.0,
    threshold_db=-18.0, ratio=2.5, attack_ms=5.0, release_ms=150.0,
  ),
  "music": TonePreset(
    low_shelf_hz=120.0, low_gain_db=1.5,
    mid_hz=1500.0, mid_gain_db=0.0, mid_q=0.8,
    high_shelf_hz=8000.0, high_gain_db=1.5,
    threshold_db=-24.0, ratio=2.0, attack_ms=3.0, release_ms=100.0,
  ),
}


def tone_preservation_factor(preserve_tone: bool) -> float:
  return PRESERVE_TONE_FACTOR if preserve_tone else 1.0


def tone_coefficients(mode: str, preserve_tone: bool) -> TonePreset:
  try:
    preset = MODE_PRESETS[mode]  # type: ignore[index]
  except KeyError:
    raise ValueError(f"unknown content mode {mode!r}") from None
  factor = tone_preservation_factor(preserve_tone)
  return replace(
    preset,
    low_gain_db=preset.low_gain_db * factor,
    mid_gain_db=preset.mid_gain_db * factor,
    high_gain_db=preset.high_gain_db * factor,
  )


class ContentAwareToneStage(Stage):
  name = "content_tone"

  def configure(self, mode: str = "music", preserve_tone: bool = True) -> None:
    self._coeffs = tone_coefficients(mode, preserve_tone)
    self.mode = mode
    self.preset_name = mode
    self.preserve_tone = bool(preserve_tone)
    self.factor = tone_preservation_factor(self.preserve_tone)

  @classmethod
  def parameters_for(cls, settings: ProcessingSettings) -> Dict[str, Any]:
    return {"mode": settings.mode, "preserve_tone": settings.preserve_tone}

  def coefficients(self) -> Dict[str, Any]:
    data = asdict(self._coeffs)
    data["tone_preservation_factor"] = self.factor
    return data

  @property
  def coeffs(self) -> TonePreset:
    return self._coeffs

  def _board(self, sr: int) -> Pedalboard:
    c = self._coeffs
    return Pedalboard([
      LowShelfFilter(cutoff_frequency_hz=clamp_freq(c.low_shelf_hz, sr), gain_db=c.low_gain_db, q=_SHELF_Q),
      PeakFilter(cutoff_frequency_hz=clamp_freq(c.mid_hz, sr), gain_db=c.mid_gain_db, q=c.mid_q),
      HighShelfFilter(cutoff_frequency_hz=clamp_freq(c.high_shelf_hz, sr), gain_db=c.high_gain_db, q=_SHELF_Q),
      Compressor(
        threshold_db=c.threshold_db,
        ratio=c.ratio,
        attack_ms=c.attack_ms,
        release_ms=c.release_ms,
      ),
    ])

  def _render(self, buffer: WaveformBuffer) -> np.ndarray:
    return render_board(self._board(buffer.sample_rate), buffer)
