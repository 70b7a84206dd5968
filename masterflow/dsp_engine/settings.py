"""Processing settings and results records."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal, Mapping, Optional, get_args

ContentMode = Literal["music", "podcast", "vocal", "instrumental"]
BeatCorrectionMode = Literal["gentle", "balanced", "precise"]

CONTENT_MODES = get_args(ContentMode)
BEAT_CORRECTION_MODES = get_args(BeatCorrectionMode)

# camelCase field names used by clients and job records
_CAMEL = {
  "targetLufs": "target_lufs",
  "dryWet": "dry_wet",
  "noiseReduction": "noise_reduction",
  "beatQuantization": "beat_quantization",
  "swingPreservation": "swing_preservation",
  "preserveTempo": "preserve_tempo",
  "preserveTone": "preserve_tone",
  "beatCorrectionMode": "beat_correction_mode",
}


def _check_range(name: str, value: float, low: float, high: float) -> None:
  if not (low <= value <= high):
    raise ValueError(f"{name} must be within [{low}, {high}], got {value}")


@dataclass(frozen=True)
class ProcessingSettings:
  mode: ContentMode = "music"
  target_lufs: float = -14.0
  dry_wet: float = 100.0
  noise_reduction: float = 50.0
  beat_quantization: Optional[float] = None
  swing_preservation: bool = True
  preserve_tempo: bool = True
  preserve_tone: bool = True
  beat_correction_mode: BeatCorrectionMode = "gentle"

  def __post_init__(self) -> None:
    if self.mode not in CONTENT_MODES:
      raise ValueError(f"unknown mode {self.mode!r}")
    if self.beat_correction_mode not in BEAT_CORRECTION_MODES:
      raise ValueError(f"unknown beat correction mode {self.beat_correction_mode!r}")
    _check_range("target_lufs", self.target_lufs, -70.0, 0.0)
    _check_range("dry_wet", self.dry_wet, 0.0, 100.0)
    _check_range("noise_reduction", self.noise_reduction, 0.0, 100.0)
    if self.beat_quantization is not None:
      _check_range("beat_quantization", self.beat_quantization, 0.0, 100.0)

  @property
  def noise_amount(self) -> float:
    """Noise reduction as a 0-1 amount."""
    return self.noise_reduction / 100.0

  @property
  def quantization_amount(self) -> float:
    return (self.beat_quantization or 0.0) / 100.0

  @classmethod
  def from_dict(cls, data: Mapping[str, Any]) -> "ProcessingSettings":
    """Build from camelCase or snake_case keys. Unknown keys are ignored."""
    fields = set(cls.__dataclass_fields__)
    kwargs: Dict[str, Any] = {}
    for key, value in data.items():
      name = _CAMEL.get(key, key)
      if name in fields and value is not None:
        kwargs[name] = value
    for name in ("target_lufs", "dry_wet", "noise_reduction", "beat_quantization"):
      if name in kwargs:
        kwargs[name] = float(kwargs[name])
    return cls(**kwargs)

  def to_dict(self) -> Dict[str, Any]:
    return {
      "mode": self.mode,
      "targetLufs": self.target_lufs,
      "dryWet": self.dry_wet,
      "noiseReduction": self.noise_reduction,
      "beatQuantization": self.beat_quantization,
      "swingPreservation": self.swing_preservation,
      "preserveTempo": self.preserve_tempo,
      "preserveTone": self.preserve_tone,
      "beatCorrectionMode": self.beat_correction_mode,
    }


@dataclass(frozen=True)
class ProcessingResults:
  input_lufs: float
  output_lufs: float
  input_peak: float
  output_peak: float
  noise_reduction: float
  peak_limited: bool = False
  gain_db: float = 0.0

  def to_dict(self) -> Dict[str, Any]:
    return {
      "inputLufs": round(self.input_lufs, 2),
      "outputLufs": round(self.output_lufs, 2),
      "inputPeak": round(self.input_peak, 2),
      "outputPeak": round(self.output_peak, 2),
      "noiseReduction": round(self.noise_reduction, 2),
      "peakLimited": self.peak_limited,
      "gainDb": round(self.gain_db, 2),
    }
