"""Pydantic request / response models for the HTTP API."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from masterflow.dsp_engine.settings import ProcessingSettings


class SettingsForm(BaseModel):
    """Processing settings as sent by the browser (camelCase accepted)."""

    model_config = {"populate_by_name": True}

    mode: Literal["music", "podcast", "vocal", "instrumental"] = "music"
    target_lufs: float = Field(-14.0, ge=-70.0, le=0.0, alias="targetLufs")
    dry_wet: float = Field(100.0, ge=0.0, le=100.0, alias="dryWet")
    noise_reduction: float = Field(50.0, ge=0.0, le=100.0, alias="noiseReduction")
    beat_quantization: Optional[float] = Field(None, ge=0.0, le=100.0, alias="beatQuantization")
    swing_preservation: bool = Field(True, alias="swingPreservation")
    preserve_tempo: bool = Field(True, alias="preserveTempo")
    preserve_tone: bool = Field(True, alias="preserveTone")
    beat_correction_mode: Literal["gentle", "balanced", "precise"] = Field("gentle", alias="beatCorrectionMode")

    def to_settings(self) -> ProcessingSettings:
        return ProcessingSettings(**self.model_dump(by_alias=False))


class ResultsModel(BaseModel):
    inputLufs: float
    outputLufs: float
    inputPeak: float
    outputPeak: float
    noiseReduction: float
    peakLimited: bool = False
    gainDb: float = 0.0


class SpectralModel(BaseModel):
    centroid_hz: float
    rolloff_hz: float
    bandwidth_hz: float


class AnalysisResponse(BaseModel):
    sample_rate: int
    channels: int
    frames: int
    duration: float
    lufs: float
    peak_dbfs: float
    spectral: SpectralModel
    suggested_mode: str


class ProcessResponse(BaseModel):
    status: str
    output_file: str
    file_name: str
    results: ResultsModel
    stages: List[Dict[str, Any]] = []


class JobModel(BaseModel):
    id: str
    fileName: str
    fileSize: int
    status: str
    progress: int
    settings: Dict[str, Any]
    results: Optional[ResultsModel] = None
    resultUrl: Optional[str] = None
    error: Optional[str] = None
    createdAt: float
    startedAt: Optional[float] = None
    finishedAt: Optional[float] = None
    processingTime: Optional[float] = None


class JobCreated(BaseModel):
    job_id: str
    status: str = "pending"


class InferenceStatus(BaseModel):
    backend: str
    ready: bool


class ErrorEntry(BaseModel):
    message: str
    severity: str
    code: str
    context: Dict[str, Any] = {}
    timestamp: float
