"""Noise suppression: high-pass rumble removal plus noise-floor dynamics."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import numpy as np
from pedalboard import Compressor, HighpassFilter, Pedalboard

from .buffer import WaveformBuffer
from .settings import ProcessingSettings
from .stage import Enhancer, Stage, render_board

logger = logging.getLogger(__name__)

# maximum estimated reduction at full amount, in dB
_MAX_REDUCTION_DB = 10.0
# the high-pass alone still removes some subsonic energy at amount 0
_MIN_REDUCTION_DB = 0.5
_PRESERVE_REDUCTION_SCALE = 0.6


@dataclass(frozen=True)
class NoiseCoefficients:
  cutoff_hz: float
  threshold_db: float
  ratio: float
  attack_ms: float
  release_ms: float


def noise_coefficients(amount: float, preserve_tone: bool) -> NoiseCoefficients:
  amount = float(np.clip(amount, 0.0, 1.0))
  threshold = -50.0 + 20.0 * (1.0 - amount)
  if preserve_tone:
    return NoiseCoefficients(
      cutoff_hz=max(15.0, 60.0 * amount),
      threshold_db=threshold - 6.0,
      ratio=1.5 + 4.5 * amount,
      attack_ms=10.0,
      release_ms=400.0,
    )
  return NoiseCoefficients(
    cutoff_hz=max(20.0, 100.0 * amount),
    threshold_db=threshold,
    ratio=2.0 + 10.0 * amount,
    attack_ms=3.0,
    release_ms=250.0,
  )


def estimate_reduction(amount: float, preserve_tone: bool) -> float:
  amount = float(np.clip(amount, 0.0, 1.0))
  reduction = _MIN_REDUCTION_DB + (_MAX_REDUCTION_DB - _MIN_REDUCTION_DB) * amount
  if preserve_tone:
    reduction *= _PRESERVE_REDUCTION_SCALE
  return float(reduction)


class NoiseSuppressionStage(Stage):
  name = "noise_suppression"

  def __init__(self, enhancer: Optional[Enhancer] = None) -> None:
    self._enhancer = enhancer
    super().__init__()

  def configure(self, amount: float = 0.5, preserve_tone: bool = True) -> None:
    if not 0.0 <= amount <= 1.0:
      raise ValueError(f"amount must be within [0, 1], got {amount}")
    self.amount = float(amount)
    self.preserve_tone = bool(preserve_tone)
    self.preset_name = "noise_preserve" if self.preserve_tone else "noise_full"
    self._coeffs = noise_coefficients(self.amount, self.preserve_tone)

  @classmethod
  def parameters_for(cls, settings: ProcessingSettings) -> Dict[str, Any]:
    return {"amount": settings.noise_amount, "preserve_tone": settings.preserve_tone}

  def coefficients(self) -> Dict[str, Any]:
    return asdict(self._coeffs)

  @property
  def coeffs(self) -> NoiseCoefficients:
    return self._coeffs

  def estimate_reduction(self) -> float:
    """Estimated noise-floor reduction in dB for the current configuration."""
    return estimate_reduction(self.amount, self.preserve_tone)

  def _board(self) -> Pedalboard:
    c = self._coeffs
    return Pedalboard([
      HighpassFilter(cutoff_frequency_hz=c.cutoff_hz),
      Compressor(
        threshold_db=c.threshold_db,
        ratio=c.ratio,
        attack_ms=c.attack_ms,
        release_ms=c.release_ms,
      ),
    ])

  def _render(self, buffer: WaveformBuffer) -> np.ndarray:
    source = buffer
    enhancer = self._enhancer
    if enhancer is not None and self.amount > 0.0 and enhancer.is_ready():
      logger.debug("noise stage using %s enhancer", enhancer.name)
      enhanced = enhancer.enhance(buffer, self.amount, self.preserve_tone)
      if enhanced.same_shape_as(buffer):
        source = enhanced
      else:
        logger.warning("%s enhancer changed buffer shape, ignoring its output", enhancer.name)
    return render_board(self._board(), source)
