"""Common contract for the mastering stages.

A stage is configured with plain keyword parameters, then renders a
new buffer from an input buffer. Configuration never touches audio and
rendering never touches configuration.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Protocol

import numpy as np
from pedalboard import Pedalboard

from .buffer import WaveformBuffer
from .settings import ProcessingSettings


class Enhancer(Protocol):
  """Optional learned processor a stage may call into."""

  name: str

  def is_ready(self) -> bool: ...

  def enhance(self, buffer: WaveformBuffer, amount: float, preserve_tone: bool) -> WaveformBuffer: ...


class Stage(ABC):
  name = "stage"

  def __init__(self) -> None:
    self.preset_name = "default"
    self.preserve_tone = False
    self.configure()

  @abstractmethod
  def configure(self, **parameters: Any) -> None:
    """Replace every coefficient. Omitted parameters fall back to defaults."""

  @classmethod
  @abstractmethod
  def parameters_for(cls, settings: ProcessingSettings) -> Dict[str, Any]:
    """Map user settings onto this stage's ``configure`` parameters."""

  @abstractmethod
  def coefficients(self) -> Dict[str, Any]:
    ...

  @abstractmethod
  def _render(self, buffer: WaveformBuffer) -> np.ndarray:
    ...

  def process(self, buffer: WaveformBuffer) -> WaveformBuffer:
    if buffer.frame_count == 0:
      return buffer.copy()
    out = np.asarray(self._render(buffer), dtype=np.float32)
    if out.shape != buffer.samples.shape:
      raise RuntimeError(
        f"{self.name} produced shape {out.shape}, expected {buffer.samples.shape}"
      )
    return buffer.with_samples(out)

  def describe(self) -> Dict[str, Any]:
    return {
      "stage": self.name,
      "preset": self.preset_name,
      "preserve_tone": self.preserve_tone,
      "coefficients": self.coefficients(),
    }


def render_board(board: Pedalboard, buffer: WaveformBuffer) -> np.ndarray:
  """Run a pedalboard chain over each channel of ``buffer``.

  Channels are rendered as independent mono signals so the channel /
  frame layout never has to be guessed by pedalboard.
  """
  frames = buffer.frame_count
  out = np.empty((buffer.channel_count, frames), dtype=np.float32)
  for ch in range(buffer.channel_count):
    mono = np.ascontiguousarray(buffer.samples[ch], dtype=np.float32).copy()
    rendered = np.asarray(board(mono, buffer.sample_rate), dtype=np.float32).reshape(-1)
    out[ch] = rendered[:frames]
  return out
