"""Stereo phase-coherence stage.

Works in the mid/side domain on the first channel pair: side content
below the crossover is removed so the low end is mono and phase
coherent, then the remaining side signal is scaled by ``width``.
"""
from __future__ import annotations

from typing import Any, Dict, Tuple

import numpy as np

from .biquad_eq import linkwitz_riley
from .buffer import WaveformBuffer
from .settings import ProcessingSettings
from .stage import Stage

WIDTH_RANGE = (0.8, 1.4)


def to_mid_side(left: np.ndarray, right: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
  return 0.5 * (left + right), 0.5 * (left - right)


def from_mid_side(mid: np.ndarray, side: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
  return mid + side, mid - side


class PhaseCoherenceStage(Stage):
  name = "phase_coherence"

  def configure(self, crossover_hz: float = 120.0, width: float = 1.0, preserve_tone: bool = True) -> None:
    if crossover_hz <= 0:
      raise ValueError(f"crossover_hz must be positive, got {crossover_hz}")
    self.preserve_tone = bool(preserve_tone)
    self.crossover_hz = float(crossover_hz)
    # keep width changes subtle when the tone should be preserved
    scale = 0.3 if self.preserve_tone else 1.0
    requested = float(np.clip(width, *WIDTH_RANGE))
    self.width = 1.0 + (requested - 1.0) * scale
    self.preset_name = "mono_bass"

  @classmethod
  def parameters_for(cls, settings: ProcessingSettings) -> Dict[str, Any]:
    return {"preserve_tone": settings.preserve_tone}

  def coefficients(self) -> Dict[str, Any]:
    return {"crossover_hz": self.crossover_hz, "width": self.width}

  def _render(self, buffer: WaveformBuffer) -> np.ndarray:
    out = np.array(buffer.samples, dtype=np.float32, copy=True)
    if buffer.channel_count < 2:
      return out

    left = buffer.samples[0].astype(np.float64)
    right = buffer.samples[1].astype(np.float64)
    mid, side = to_mid_side(left, right)
    side_hp = linkwitz_riley("highpass", self.crossover_hz, buffer.sample_rate).process(side)
    left_out, right_out = from_mid_side(mid, side_hp.astype(np.float64) * self.width)
    out[0] = left_out
    out[1] = right_out
    return out
