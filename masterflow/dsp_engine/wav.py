"""16-bit PCM WAV serialisation.

The layout is the canonical 44-byte RIFF header followed by
interleaved little-endian int16 frames.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np

from ..errors import DimensionMismatch
from .buffer import WaveformBuffer

HEADER_SIZE = 44
BITS_PER_SAMPLE = 16
_BYTES_PER_SAMPLE = BITS_PER_SAMPLE // 8
_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass(frozen=True)
class WavHeader:
  riff_size: int
  fmt_size: int
  audio_format: int
  channel_count: int
  sample_rate: int
  byte_rate: int
  block_align: int
  bits_per_sample: int
  data_length: int


def pcm16(samples: np.ndarray) -> np.ndarray:
  """Clamp to [-1, 1], scale (32768 below zero, 32767 otherwise), truncate.

  NaN becomes silence, infinities become full scale.
  """
  finite = np.nan_to_num(samples.astype(np.float64), nan=0.0, posinf=1.0, neginf=-1.0)
  clipped = np.clip(finite, -1.0, 1.0)
  scaled = np.where(clipped < 0.0, clipped * 32768.0, clipped * 32767.0)
  return np.trunc(scaled).astype("<i2")


def encode_header(sample_rate: int, channel_count: int, frame_count: int) -> bytes:
  data_length = frame_count * channel_count * _BYTES_PER_SAMPLE
  return _HEADER.pack(
    b"RIFF",
    36 + data_length,
    b"WAVE",
    b"fmt ",
    16,
    1,
    channel_count,
    sample_rate,
    sample_rate * channel_count * _BYTES_PER_SAMPLE,
    channel_count * _BYTES_PER_SAMPLE,
    BITS_PER_SAMPLE,
    b"data",
    data_length,
  )


def encode_wav(buffer: WaveformBuffer) -> bytes:
  header = encode_header(buffer.sample_rate, buffer.channel_count, buffer.frame_count)
  # [channels, frames] -> frame-major interleave
  interleaved = pcm16(buffer.samples).T.reshape(-1)
  return header + interleaved.tobytes()


def parse_wav_header(data: bytes) -> WavHeader:
  if len(data) < HEADER_SIZE:
    raise DimensionMismatch(f"WAV data shorter than header: {len(data)} bytes")
  riff, riff_size, wave, fmt, *fields, data_tag, data_length = _HEADER.unpack_from(data)
  if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or data_tag != b"data":
    raise DimensionMismatch("not a canonical PCM WAV header")
  if len(data) - HEADER_SIZE != data_length:
    raise DimensionMismatch(
      f"header declares {data_length} data bytes, payload has {len(data) - HEADER_SIZE}"
    )
  fmt_size, audio_format, channels, sr, byte_rate, block_align, bits = fields
  return WavHeader(
    riff_size=riff_size,
    fmt_size=fmt_size,
    audio_format=audio_format,
    channel_count=channels,
    sample_rate=sr,
    byte_rate=byte_rate,
    block_align=block_align,
    bits_per_sample=bits,
    data_length=data_length,
  )


def write_wav(path: Union[str, Path], buffer: WaveformBuffer) -> Path:
  target = Path(path)
  target.write_bytes(encode_wav(buffer))
  return target
