"""Model-inference backends for the noise stage.

The pipeline never depends on a learned model being present:
``PassthroughInference`` is always ready and returns its input
unchanged, so the deterministic stage chain alone defines the result.
``SpectralGateInference`` adds noisereduce spectral gating when it
initialises successfully.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, Literal

import numpy as np
import noisereduce as nr

from masterflow.dsp_engine.buffer import WaveformBuffer

logger = logging.getLogger(__name__)

InferenceKind = Literal["passthrough", "spectral"]


class InferenceService(ABC):
    name = "base"

    @abstractmethod
    def initialize(self) -> bool:
        """Load or warm up the backend. Returns readiness."""

    @abstractmethod
    def is_ready(self) -> bool:
        ...

    @abstractmethod
    def enhance(self, buffer: WaveformBuffer, amount: float, preserve_tone: bool) -> WaveformBuffer:
        ...

    def status(self) -> Dict[str, object]:
        return {"backend": self.name, "ready": self.is_ready()}


class PassthroughInference(InferenceService):
    name = "passthrough"

    def initialize(self) -> bool:
        return True

    def is_ready(self) -> bool:
        return True

    def enhance(self, buffer: WaveformBuffer, amount: float, preserve_tone: bool) -> WaveformBuffer:
        return buffer.copy()


class SpectralGateInference(InferenceService):
    """Stationary spectral gating via noisereduce."""

    name = "spectral"

    def __init__(self, n_fft: int = 2048, hop_length: int = 512, max_strength: float = 0.8) -> None:
        self.n_fft = n_fft
        self.hop_length = hop_length
        self.max_strength = max_strength
        self._ready = False

    def initialize(self) -> bool:
        rng = np.random.default_rng(0)
        warmup = rng.normal(scale=0.01, size=self.n_fft * 4).astype(np.float32)
        try:
            nr.reduce_noise(y=warmup, sr=16000, stationary=True, n_fft=self.n_fft, hop_length=self.hop_length)
        except Exception:
            logger.exception("spectral gate warm-up failed, falling back to deterministic path")
            self._ready = False
        else:
            self._ready = True
        return self._ready

    def is_ready(self) -> bool:
        return self._ready

    def enhance(self, buffer: WaveformBuffer, amount: float, preserve_tone: bool) -> WaveformBuffer:
        strength = float(np.clip(amount, 0.0, 1.0)) * self.max_strength
        if preserve_tone:
            strength *= 0.5
        # too short for one analysis window
        if strength <= 0.0 or buffer.frame_count < self.n_fft:
            return buffer.copy()

        frames = buffer.frame_count
        out = np.empty((buffer.channel_count, frames), dtype=np.float32)
        for ch in range(buffer.channel_count):
            reduced = nr.reduce_noise(
                y=buffer.samples[ch].astype(np.float32),
                sr=buffer.sample_rate,
                prop_decrease=strength,
                stationary=True,
                n_fft=self.n_fft,
                hop_length=self.hop_length,
            )
            reduced = np.asarray(reduced, dtype=np.float32).reshape(-1)[:frames]
            if reduced.size < frames:
                reduced = np.pad(reduced, (0, frames - reduced.size))
            out[ch] = reduced
        return buffer.with_samples(out)


def build_inference(kind: str = "passthrough") -> InferenceService:
    if kind == "passthrough":
        return PassthroughInference()
    if kind == "spectral":
        return SpectralGateInference()
    raise ValueError(f"unknown inference backend {kind!r}")
