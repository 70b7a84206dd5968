"""Loudness / peak measurement and light spectral analysis.

pyloudnorm and librosa are only used here so the stages stay free of
analysis dependencies.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict

import numpy as np
import pyloudnorm as pyln
import librosa

from .buffer import WaveformBuffer
from .settings import ContentMode

LOUDNESS_FLOOR_LUFS = -70.0
LOUDNESS_CEILING_LUFS = 0.0
# finite stand-in for -inf so results stay JSON friendly
PEAK_FLOOR_DBFS = -120.0

_GATE_BLOCK_SECONDS = 0.4
# BS.1770 offset, keeps the RMS estimate in the same ballpark as the meter
_K_OFFSET_DB = -0.691


@dataclass
class LoudnessStats:
  integrated_lufs: float
  peak_dbfs: float


@dataclass
class SpectralStats:
  centroid_hz: float
  rolloff_hz: float
  bandwidth_hz: float


@lru_cache(maxsize=64)
def _meter_for_sr(sr: int) -> pyln.Meter:
  return pyln.Meter(sr)


def _mono(buffer: WaveformBuffer) -> np.ndarray:
  return buffer.samples.mean(axis=0).astype(np.float64)


def _rms_loudness(samples: np.ndarray) -> float:
  """BS.1770-style estimate without K-weighting or gating.

  Channel powers are summed, so anti-phase channels never cancel.
  """
  if samples.size == 0:
    return LOUDNESS_FLOOR_LUFS
  power = float(np.sum(np.mean(np.square(samples.astype(np.float64)), axis=1)))
  if power <= 0.0:
    return LOUDNESS_FLOOR_LUFS
  return 10.0 * np.log10(power) + _K_OFFSET_DB


def _meter_input(buffer: WaveformBuffer) -> np.ndarray:
  # pyloudnorm wants [frames] or [frames, channels]
  if buffer.channel_count == 1:
    return buffer.samples[0].astype(np.float64)
  return np.ascontiguousarray(buffer.samples.T, dtype=np.float64)


def measure_loudness(buffer: WaveformBuffer) -> float:
  """Integrated loudness in LUFS over all channels, clamped to [-70, 0]."""
  if buffer.frame_count == 0:
    return LOUDNESS_FLOOR_LUFS

  integrated = float("nan")
  if buffer.duration >= _GATE_BLOCK_SECONDS:
    try:
      integrated = float(_meter_for_sr(buffer.sample_rate).integrated_loudness(_meter_input(buffer)))
    except Exception:
      integrated = float("nan")
  if not np.isfinite(integrated):
    # Fallback: RMS-based approximation
    integrated = _rms_loudness(buffer.samples)

  return float(np.clip(integrated, LOUDNESS_FLOOR_LUFS, LOUDNESS_CEILING_LUFS))


def measure_peak(buffer: WaveformBuffer) -> float:
  """Sample peak across all channels in dBFS, never above 0."""
  if buffer.frame_count == 0:
    return PEAK_FLOOR_DBFS
  peak = float(np.max(np.abs(buffer.samples)))
  if peak <= 0.0:
    return PEAK_FLOOR_DBFS
  return float(min(0.0, max(PEAK_FLOOR_DBFS, 20.0 * np.log10(peak))))


def analyze(buffer: WaveformBuffer) -> LoudnessStats:
  return LoudnessStats(integrated_lufs=measure_loudness(buffer), peak_dbfs=measure_peak(buffer))


def spectral_stats(buffer: WaveformBuffer) -> SpectralStats:
  mono = _mono(buffer).astype(np.float32)
  if mono.size < 64 or not np.any(mono):
    return SpectralStats(centroid_hz=0.0, rolloff_hz=0.0, bandwidth_hz=0.0)

  n_fft = int(min(2048, 2 ** int(np.floor(np.log2(mono.size)))))
  sr = buffer.sample_rate
  centroid = float(librosa.feature.spectral_centroid(y=mono, sr=sr, n_fft=n_fft).mean())
  rolloff = float(librosa.feature.spectral_rolloff(y=mono, sr=sr, n_fft=n_fft, roll_percent=0.95).mean())
  bandwidth = float(librosa.feature.spectral_bandwidth(y=mono, sr=sr, n_fft=n_fft).mean())
  return SpectralStats(centroid_hz=centroid, rolloff_hz=rolloff, bandwidth_hz=bandwidth)


def suggest_mode(buffer: WaveformBuffer, stats: SpectralStats | None = None) -> ContentMode:
  """Rough content guess used to pre-select a mode in the UI.

  Dense, high-variance material reads as music; sparse material as
  speech, split into vocal / podcast by spectral centroid.
  """
  mono = _mono(buffer)
  if mono.size == 0:
    return "music"
  stats = stats or spectral_stats(buffer)
  variance = float(np.var(mono))
  if variance > 0.01:
    if buffer.channel_count == 1 and stats.centroid_hz < 1500.0:
      return "instrumental"
    return "music"
  if stats.centroid_hz > 2000.0:
    return "vocal"
  return "podcast"


def describe(buffer: WaveformBuffer) -> Dict[str, object]:
  loud = analyze(buffer)
  spectral = spectral_stats(buffer)
  return {
    "sample_rate": buffer.sample_rate,
    "channels": buffer.channel_count,
    "frames": buffer.frame_count,
    "duration": round(buffer.duration, 3),
    "lufs": round(loud.integrated_lufs, 2),
    "peak_dbfs": round(loud.peak_dbfs, 2),
    "spectral": {
      "centroid_hz": round(spectral.centroid_hz, 1),
      "rolloff_hz": round(spectral.rolloff_hz, 1),
      "bandwidth_hz": round(spectral.bandwidth_hz, 1),
    },
    "suggested_mode": suggest_mode(buffer, spectral),
  }
