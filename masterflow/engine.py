"""Mastering session: one loaded file, its latest render and the mix.

Renders run off the event loop in a worker thread. Every ``load``
bumps a generation counter; a render that finishes after a newer load
is reported as stale and does not touch the session.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from masterflow.dsp_engine.buffer import WaveformBuffer, decode_audio
from masterflow.dsp_engine.mixer import mix_dry_wet
from masterflow.dsp_engine.pipeline import MasteringPipeline
from masterflow.dsp_engine.settings import ProcessingResults, ProcessingSettings
from masterflow.dsp_engine.wav import encode_wav
from masterflow.errors import InvalidState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunOutcome:
    generation: int
    results: ProcessingResults
    stale: bool = False


class MasteringSession:
    def __init__(self, pipeline: MasteringPipeline) -> None:
        self._pipeline = pipeline
        self._generation = 0
        self._dry: Optional[WaveformBuffer] = None
        self._wet: Optional[WaveformBuffer] = None
        self._results: Optional[ProcessingResults] = None
        self._dry_wet = 100.0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def dry(self) -> Optional[WaveformBuffer]:
        return self._dry

    @property
    def wet(self) -> Optional[WaveformBuffer]:
        return self._wet

    @property
    def results(self) -> Optional[ProcessingResults]:
        return self._results

    @property
    def dry_wet(self) -> float:
        return self._dry_wet

    def load(self, buffer: WaveformBuffer) -> int:
        """Replace the loaded audio. Any earlier render becomes stale."""
        self._generation += 1
        self._dry = buffer
        self._wet = None
        self._results = None
        logger.debug("loaded %d ch x %d frames (generation %d)", buffer.channel_count, buffer.frame_count, self._generation)
        return self._generation

    def load_bytes(self, data: bytes) -> int:
        return self.load(decode_audio(data))

    def release(self) -> None:
        self._generation += 1
        self._dry = None
        self._wet = None
        self._results = None

    async def process(self, settings: ProcessingSettings) -> RunOutcome:
        if self._dry is None:
            raise InvalidState("load an audio file before processing")

        generation = self._generation
        dry = self._dry
        wet, results = await asyncio.to_thread(self._pipeline.run, dry, settings)

        if generation != self._generation:
            logger.info("discarding stale render (generation %d, current %d)", generation, self._generation)
            return RunOutcome(generation=generation, results=results, stale=True)

        self._wet = wet
        self._results = results
        self._dry_wet = settings.dry_wet
        return RunOutcome(generation=generation, results=results)

    def set_dry_wet(self, percent: float) -> None:
        if not 0.0 <= percent <= 100.0:
            raise ValueError(f"dry/wet must be within [0, 100], got {percent}")
        self._dry_wet = float(percent)

    def mixed_buffer(self) -> WaveformBuffer:
        if self._dry is None or self._wet is None:
            raise InvalidState("no processed audio available")
        return mix_dry_wet(self._dry, self._wet, self._dry_wet)

    def export_wav(self) -> bytes:
        return encode_wav(self.mixed_buffer())
