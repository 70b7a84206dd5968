"""DSP engine for masterflow.

Waveform buffers, the four mastering stages, the pipeline that chains
them, the dry/wet mixer and the WAV encoder.
"""
from .buffer import WaveformBuffer, decode_audio
from .mixer import mix_dry_wet
from .pipeline import GainSolution, MasteringPipeline, solve_normalization_gain
from .settings import ProcessingResults, ProcessingSettings
from .wav import encode_wav, parse_wav_header

__all__ = [
  "WaveformBuffer",
  "decode_audio",
  "mix_dry_wet",
  "GainSolution",
  "MasteringPipeline",
  "solve_normalization_gain",
  "ProcessingResults",
  "ProcessingSettings",
  "encode_wav",
  "parse_wav_header",
]
