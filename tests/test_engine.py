from __future__ import annotations

import asyncio

import numpy as np
import pytest

from masterflow.dsp_engine.pipeline import MasteringPipeline
from masterflow.dsp_engine.settings import ProcessingSettings
from masterflow.dsp_engine.wav import encode_wav, parse_wav_header
from masterflow.engine import MasteringSession
from masterflow.errors import DecodeFailure, InvalidState, RenderFailure

from helpers import noisy_mix, tone


class ReloadingPipeline:
    """Loads a different file into the session while the render is in flight."""

    def __init__(self, session_ref, replacement):
        self._inner = MasteringPipeline()
        self._session_ref = session_ref
        self._replacement = replacement

    def run(self, buffer, settings):
        self._session_ref[0].load(self._replacement)
        return self._inner.run(buffer, settings)


class FlakyPipeline:
    def __init__(self):
        self._inner = MasteringPipeline()
        self.fail = False

    def run(self, buffer, settings):
        if self.fail:
            raise RenderFailure("backend gone")
        return self._inner.run(buffer, settings)


def test_process_requires_loaded_buffer():
    session = MasteringSession(MasteringPipeline())
    with pytest.raises(InvalidState):
        asyncio.run(session.process(ProcessingSettings()))
    with pytest.raises(InvalidState):
        session.export_wav()


def test_process_then_mix_and_export(stereo_mix):
    session = MasteringSession(MasteringPipeline())
    session.load(stereo_mix)
    outcome = asyncio.run(session.process(ProcessingSettings(dry_wet=100.0)))
    assert not outcome.stale
    assert session.results == outcome.results
    assert session.mixed_buffer() is session.wet

    session.set_dry_wet(0.0)
    assert session.mixed_buffer() is stereo_mix

    session.set_dry_wet(50.0)
    header = parse_wav_header(session.export_wav())
    assert header.channel_count == 2
    assert header.data_length == stereo_mix.frame_count * 2 * 2

    with pytest.raises(ValueError):
        session.set_dry_wet(101.0)


def test_stale_render_is_discarded():
    first = noisy_mix(seconds=0.3)
    second = tone(seconds=0.2)
    holder = []
    session = MasteringSession(ReloadingPipeline(holder, second))
    holder.append(session)
    session.load(first)

    outcome = asyncio.run(session.process(ProcessingSettings()))

    assert outcome.stale
    assert session.dry is second
    assert session.wet is None
    assert session.results is None


def test_render_failure_leaves_state_untouched(stereo_mix):
    pipeline = FlakyPipeline()
    session = MasteringSession(pipeline)
    session.load(stereo_mix)
    asyncio.run(session.process(ProcessingSettings()))
    wet, results = session.wet, session.results

    pipeline.fail = True
    with pytest.raises(RenderFailure):
        asyncio.run(session.process(ProcessingSettings(mode="podcast")))
    assert session.wet is wet
    assert session.results is results


def test_load_bytes_decodes_and_bumps_generation(stereo_tone):
    session = MasteringSession(MasteringPipeline())
    gen = session.load_bytes(encode_wav(stereo_tone))
    assert gen == session.generation == 1
    assert session.dry.frame_count == stereo_tone.frame_count
    assert np.allclose(session.dry.samples, stereo_tone.samples, atol=1e-4)
    with pytest.raises(DecodeFailure):
        session.load_bytes(b"nope")


def test_release_drops_buffers(stereo_tone):
    session = MasteringSession(MasteringPipeline())
    session.load(stereo_tone)
    session.release()
    assert session.dry is None
    with pytest.raises(InvalidState):
        asyncio.run(session.process(ProcessingSettings()))
