from __future__ import annotations

import pytest

from masterflow.dsp_engine.buffer import WaveformBuffer

from helpers import noisy_mix, tone


@pytest.fixture
def stereo_tone() -> WaveformBuffer:
    return tone()


@pytest.fixture
def stereo_mix() -> WaveformBuffer:
    return noisy_mix()
