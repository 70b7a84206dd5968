"""Waveform buffer: the value every stage consumes and produces.

Samples are stored channels-first ``[channels, frames]`` as float32,
the same layout the rest of the DSP engine works in. The array is
made read-only so a stage cannot mutate its input in place.
"""
from __future__ import annotations

import io
from dataclasses import dataclass

import numpy as np
import soundfile as sf

from ..errors import DecodeFailure


@dataclass(frozen=True)
class WaveformBuffer:
  sample_rate: int
  samples: np.ndarray

  def __post_init__(self) -> None:
    if int(self.sample_rate) <= 0:
      raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")

    data = np.array(self.samples, dtype=np.float32, copy=True)
    if data.ndim == 1:
      data = data[np.newaxis, :]
    if data.ndim != 2:
      raise ValueError("samples must be [frames] or [channels, frames]")
    if data.shape[0] < 1:
      raise ValueError("a buffer needs at least one channel")
    data.setflags(write=False)

    object.__setattr__(self, "sample_rate", int(self.sample_rate))
    object.__setattr__(self, "samples", data)

  @property
  def channel_count(self) -> int:
    return int(self.samples.shape[0])

  @property
  def frame_count(self) -> int:
    return int(self.samples.shape[1])

  @property
  def duration(self) -> float:
    return self.frame_count / float(self.sample_rate)

  def channel(self, index: int) -> np.ndarray:
    return self.samples[index]

  def with_samples(self, samples: np.ndarray) -> "WaveformBuffer":
    """New buffer at the same sample rate."""
    return WaveformBuffer(sample_rate=self.sample_rate, samples=samples)

  def copy(self) -> "WaveformBuffer":
    return self.with_samples(self.samples)

  def same_shape_as(self, other: "WaveformBuffer") -> bool:
    return (
      self.sample_rate == other.sample_rate
      and self.channel_count == other.channel_count
      and self.frame_count == other.frame_count
    )

  @classmethod
  def silent(cls, sample_rate: int, channels: int, frames: int) -> "WaveformBuffer":
    return cls(sample_rate=sample_rate, samples=np.zeros((channels, frames), dtype=np.float32))


def decode_audio(data: bytes) -> WaveformBuffer:
  """Decode any soundfile-supported container into a buffer."""
  if not data:
    raise DecodeFailure("empty audio payload")
  try:
    audio, sr = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
  except Exception as exc:
    raise DecodeFailure(f"failed to read audio: {exc}") from exc

  # soundfile returns [frames, channels]
  try:
    return WaveformBuffer(sample_rate=int(sr), samples=audio.T)
  except ValueError as exc:
    raise DecodeFailure(str(exc)) from exc
