"""Mastering pipeline: four stages in series plus loudness normalisation.

Flow of one run:
- measure input loudness / peak on the raw buffer
- noise suppression -> content tone -> phase coherence -> rhythmic
- solve a normalisation gain towards the target, limited so the
  projected peak stays below 0 dBFS
- apply the gain to the stage-chain output (the "wet" buffer)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from ..errors import InvalidState, RenderFailure
from .analysis import measure_loudness, measure_peak
from .buffer import WaveformBuffer
from .noise import NoiseSuppressionStage
from .phase import PhaseCoherenceStage
from .rhythm import RhythmicStage
from .settings import ProcessingResults, ProcessingSettings
from .stage import Enhancer, Stage
from .tone import ContentAwareToneStage

logger = logging.getLogger(__name__)

# where a peak-limited gain puts the projected peak
PEAK_CEILING_DBFS = -0.1

StageFactory = Callable[[], Stage]


@dataclass(frozen=True)
class GainSolution:
  gain: float
  gain_db: float
  peak_limited: bool
  projected_peak: float
  achieved_lufs: float


def solve_normalization_gain(input_lufs: float, input_peak: float, target_lufs: float) -> GainSolution:
  """Linear gain that moves ``input_lufs`` to ``target_lufs`` without clipping.

  If the projected peak would reach 0 dBFS the gain is reduced so the
  peak lands on ``PEAK_CEILING_DBFS``; the target loudness is then
  missed on the low side.
  """
  gain_db = target_lufs - input_lufs
  limited = input_peak + gain_db >= 0.0
  if limited:
    gain_db = PEAK_CEILING_DBFS - input_peak
  projected = input_peak + gain_db
  achieved = target_lufs if not limited else input_lufs + gain_db
  return GainSolution(
    gain=float(10.0 ** (gain_db / 20.0)),
    gain_db=float(gain_db),
    peak_limited=limited,
    projected_peak=float(min(0.0, projected)),
    achieved_lufs=float(achieved),
  )


def default_stage_factories(enhancer: Optional[Enhancer] = None) -> List[StageFactory]:
  return [
    lambda: NoiseSuppressionStage(enhancer=enhancer),
    ContentAwareToneStage,
    PhaseCoherenceStage,
    RhythmicStage,
  ]


class MasteringPipeline:
  """Ordered stage chain. Stages are built fresh for every run."""

  def __init__(
    self,
    enhancer: Optional[Enhancer] = None,
    stage_factories: Optional[Sequence[StageFactory]] = None,
  ) -> None:
    self.enhancer = enhancer
    self._factories = list(stage_factories) if stage_factories is not None else default_stage_factories(enhancer)

  def build_stages(self, settings: ProcessingSettings) -> List[Stage]:
    stages = []
    for factory in self._factories:
      stage = factory()
      stage.configure(**stage.parameters_for(settings))
      stages.append(stage)
    return stages

  def render(self, buffer: WaveformBuffer, stages: Sequence[Stage]) -> WaveformBuffer:
    current = buffer
    for stage in stages:
      logger.debug("stage %s preset=%s preserve_tone=%s", stage.name, stage.preset_name, stage.preserve_tone)
      current = stage.process(current)
    return current

  def run(
    self, buffer: Optional[WaveformBuffer], settings: ProcessingSettings
  ) -> Tuple[WaveformBuffer, ProcessingResults]:
    if buffer is None:
      raise InvalidState("no audio loaded")

    input_lufs = measure_loudness(buffer)
    input_peak = measure_peak(buffer)

    try:
      stages = self.build_stages(settings)
      chained = self.render(buffer, stages)
      solution = solve_normalization_gain(input_lufs, input_peak, settings.target_lufs)
      wet = chained.with_samples(chained.samples.astype(np.float64) * solution.gain)
    except Exception as exc:
      raise RenderFailure(f"offline render failed: {exc}") from exc

    noise_estimate = 0.0
    for stage in stages:
      if isinstance(stage, NoiseSuppressionStage):
        noise_estimate = stage.estimate_reduction()
        break

    results = ProcessingResults(
      input_lufs=input_lufs,
      output_lufs=solution.achieved_lufs,
      input_peak=input_peak,
      output_peak=solution.projected_peak,
      noise_reduction=noise_estimate,
      peak_limited=solution.peak_limited,
      gain_db=solution.gain_db,
    )
    logger.info(
      "mastered %.2fs mode=%s in=%.2f LUFS out=%.2f LUFS gain=%.2f dB limited=%s",
      buffer.duration, settings.mode, input_lufs, results.output_lufs, solution.gain_db, solution.peak_limited,
    )
    return wet, results

  def describe(self, settings: ProcessingSettings) -> List[dict]:
    return [stage.describe() for stage in self.build_stages(settings)]
