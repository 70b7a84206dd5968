"""Rhythmic / transient shaping.

Transients are emphasised with a fast-minus-slow envelope follower and
the result goes through a compressor. Nothing here moves audio in
time: "quantization" only sets how hard transients are shaped.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict

import numpy as np
from pedalboard import Compressor, Pedalboard
from scipy.signal import lfilter

from .buffer import WaveformBuffer
from .settings import BEAT_CORRECTION_MODES, ProcessingSettings
from .stage import Stage, render_board


@dataclass(frozen=True)
class RhythmCoefficients:
  threshold_db: float
  ratio: float
  attack_ms: float
  release_ms: float
  enhancer_gain: float


BASE_COEFFICIENTS: Dict[str, RhythmCoefficients] = {
  "gentle": RhythmCoefficients(threshold_db=-24.0, ratio=2.0, attack_ms=10.0, release_ms=150.0, enhancer_gain=0.15),
  "balanced": RhythmCoefficients(threshold_db=-24.0, ratio=3.0, attack_ms=5.0, release_ms=100.0, enhancer_gain=0.30),
  "precise": RhythmCoefficients(threshold_db=-24.0, ratio=4.0, attack_ms=2.0, release_ms=60.0, enhancer_gain=0.50),
}

_TEMPO_THRESHOLD_OFFSET_DB = 6.0
_TEMPO_SCALE = 0.5
_TEMPO_TIME_SCALE = 1.5
_SWING_RELEASE_SCALE = 1.5


def rhythm_coefficients(
  mode: str,
  quantization: float,
  swing_preservation: bool,
  preserve_tempo: bool,
) -> RhythmCoefficients:
  if mode not in BASE_COEFFICIENTS:
    raise ValueError(f"unknown beat correction mode {mode!r}")
  base = BASE_COEFFICIENTS[mode]
  q = float(np.clip(quantization, 0.0, 1.0))

  threshold = base.threshold_db
  ratio = 1.0 + (base.ratio - 1.0) * (0.5 + 0.5 * q)
  enhancer = base.enhancer_gain * (0.25 + 0.75 * q)
  time_scale = 1.5 - 0.5 * q
  attack = base.attack_ms * time_scale
  release = base.release_ms * time_scale

  if preserve_tempo:
    threshold += _TEMPO_THRESHOLD_OFFSET_DB
    ratio = 1.0 + (ratio - 1.0) * _TEMPO_SCALE
    enhancer *= _TEMPO_SCALE
    attack *= _TEMPO_TIME_SCALE
    release *= _TEMPO_TIME_SCALE

  if swing_preservation:
    release *= _SWING_RELEASE_SCALE

  return RhythmCoefficients(
    threshold_db=threshold,
    ratio=ratio,
    attack_ms=attack,
    release_ms=release,
    enhancer_gain=enhancer,
  )


def _envelope(x: np.ndarray, time_ms: float, sr: int) -> np.ndarray:
  coeff = np.exp(-1.0 / (0.001 * time_ms * sr))
  return lfilter([1.0 - coeff], [1.0, -coeff], np.abs(x))


def emphasize_transients(samples: np.ndarray, sr: int, gain: float, fast_ms: float, slow_ms: float) -> np.ndarray:
  out = np.empty(samples.shape, dtype=np.float32)
  for ch in range(samples.shape[0]):
    x = samples[ch].astype(np.float64)
    fast = _envelope(x, fast_ms, sr)
    slow = _envelope(x, slow_ms, sr)
    transient = np.clip(fast - slow, 0.0, None) / (fast + 1e-9)
    out[ch] = x * (1.0 + gain * transient)
  return out


class RhythmicStage(Stage):
  name = "rhythmic"

  def configure(
    self,
    beat_quantization: float = 0.0,
    swing_preservation: bool = True,
    preserve_tempo: bool = True,
    beat_correction_mode: str = "gentle",
    preserve_tone: bool = True,
  ) -> None:
    if beat_correction_mode not in BEAT_CORRECTION_MODES:
      raise ValueError(f"unknown beat correction mode {beat_correction_mode!r}")
    self._coeffs = rhythm_coefficients(
      beat_correction_mode, beat_quantization, swing_preservation, preserve_tempo
    )
    self.beat_quantization = float(beat_quantization)
    self.swing_preservation = bool(swing_preservation)
    self.preserve_tempo = bool(preserve_tempo)
    self.preserve_tone = bool(preserve_tone)
    self.preset_name = beat_correction_mode

  @classmethod
  def parameters_for(cls, settings: ProcessingSettings) -> Dict[str, Any]:
    return {
      "beat_quantization": settings.quantization_amount,
      "swing_preservation": settings.swing_preservation,
      "preserve_tempo": settings.preserve_tempo,
      "beat_correction_mode": settings.beat_correction_mode,
      "preserve_tone": settings.preserve_tone,
    }

  def coefficients(self) -> Dict[str, Any]:
    return asdict(self._coeffs)

  @property
  def coeffs(self) -> RhythmCoefficients:
    return self._coeffs

  def _render(self, buffer: WaveformBuffer) -> np.ndarray:
    c = self._coeffs
    emphasized = emphasize_transients(
      buffer.samples, buffer.sample_rate, c.enhancer_gain, fast_ms=c.attack_ms, slow_ms=c.release_ms
    )
    board = Pedalboard([
      Compressor(
        threshold_db=c.threshold_db,
        ratio=c.ratio,
        attack_ms=c.attack_ms,
        release_ms=c.release_ms,
      ),
    ])
    return render_board(board, buffer.with_samples(emphasized))
