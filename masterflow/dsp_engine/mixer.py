"""Dry / wet blending."""
from __future__ import annotations

import numpy as np

from ..errors import DimensionMismatch
from .buffer import WaveformBuffer


def mix_dry_wet(dry: WaveformBuffer, wet: WaveformBuffer, wet_percent: float) -> WaveformBuffer:
  """Blend ``dry`` and ``wet`` linearly; ``wet_percent`` is 0-100.

  At 100 or above the wet buffer itself is returned, at 0 or below the
  dry buffer itself.
  """
  if not dry.same_shape_as(wet):
    raise DimensionMismatch(
      "dry/wet buffers differ: "
      f"dry={dry.channel_count}ch x {dry.frame_count} @ {dry.sample_rate}Hz, "
      f"wet={wet.channel_count}ch x {wet.frame_count} @ {wet.sample_rate}Hz"
    )
  if wet_percent >= 100.0:
    return wet
  if wet_percent <= 0.0:
    return dry

  w = float(wet_percent) / 100.0
  mixed = dry.samples.astype(np.float64) * (1.0 - w) + wet.samples.astype(np.float64) * w
  return dry.with_samples(mixed)
