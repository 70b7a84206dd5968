from __future__ import annotations

import numpy as np
import pytest

from masterflow.dsp_engine.analysis import (
    LOUDNESS_FLOOR_LUFS,
    PEAK_FLOOR_DBFS,
    describe,
    measure_loudness,
    measure_peak,
    suggest_mode,
)
from masterflow.dsp_engine.buffer import WaveformBuffer
from masterflow.dsp_engine.settings import CONTENT_MODES

from helpers import SR, noisy_mix, tone


def _noise(scale: float, seconds: float = 1.0, seed: int = 3) -> WaveformBuffer:
    rng = np.random.default_rng(seed)
    return WaveformBuffer(sample_rate=SR, samples=scale * rng.standard_normal((2, int(SR * seconds))))


@pytest.mark.parametrize(
    "buf",
    [
        tone(amplitude=1.0),
        tone(amplitude=1e-4),
        _noise(0.3),
        _noise(4.0),  # far beyond full scale, not clamped until encoding
        WaveformBuffer.silent(SR, 2, SR),
        tone(seconds=0.05),
    ],
)
def test_measurements_are_bounded(buf):
    loudness = measure_loudness(buf)
    peak = measure_peak(buf)
    assert LOUDNESS_FLOOR_LUFS <= loudness <= 0.0
    assert peak <= 0.0


def test_empty_buffer_yields_floors():
    buf = WaveformBuffer.silent(SR, 2, 0)
    assert measure_loudness(buf) == LOUDNESS_FLOOR_LUFS
    assert measure_peak(buf) == PEAK_FLOOR_DBFS


def test_silence_yields_floors():
    buf = WaveformBuffer.silent(SR, 1, SR)
    assert measure_loudness(buf) == LOUDNESS_FLOOR_LUFS
    assert measure_peak(buf) == PEAK_FLOOR_DBFS


def test_loudness_increases_with_energy():
    levels = [measure_loudness(_noise(scale)) for scale in (0.01, 0.03, 0.1, 0.3)]
    assert all(a < b for a, b in zip(levels, levels[1:]))


def test_short_buffer_uses_rms_estimate():
    buf = tone(amplitude=0.5, seconds=0.1, channels=1)
    expected = 20 * np.log10(0.5 / np.sqrt(2)) - 0.691
    assert measure_loudness(buf) == pytest.approx(expected, abs=0.05)


def test_peak_matches_sample_maximum():
    samples = np.zeros((2, 100))
    samples[1, 40] = -0.5
    samples[0, 10] = 0.25
    buf = WaveformBuffer(sample_rate=SR, samples=samples)
    assert measure_peak(buf) == pytest.approx(20 * np.log10(0.5), abs=1e-4)


def test_measurements_are_deterministic():
    buf = noisy_mix()
    assert measure_loudness(buf) == measure_loudness(buf)
    assert measure_peak(buf) == measure_peak(buf)


def test_describe_reports_a_known_mode():
    buf = noisy_mix()
    info = describe(buf)
    assert info["channels"] == 2
    assert info["suggested_mode"] in CONTENT_MODES
    assert suggest_mode(WaveformBuffer.silent(SR, 1, 0)) == "music"


def _anti_phase(amplitude: float, seconds: float) -> WaveformBuffer:
    t = np.arange(int(SR * seconds)) / SR
    left = amplitude * np.sin(2 * np.pi * 1000.0 * t)
    return WaveformBuffer(sample_rate=SR, samples=np.stack([left, -left]))


def _in_phase(amplitude: float, seconds: float) -> WaveformBuffer:
    t = np.arange(int(SR * seconds)) / SR
    left = amplitude * np.sin(2 * np.pi * 1000.0 * t)
    return WaveformBuffer(sample_rate=SR, samples=np.stack([left, left]))


@pytest.mark.parametrize("seconds", [1.0, 0.1])
def test_anti_phase_stereo_does_not_cancel(seconds):
    loud = measure_loudness(_anti_phase(0.5, seconds))
    quiet = measure_loudness(_in_phase(0.005, seconds))
    assert loud > quiet
    assert loud > -20.0


def test_anti_phase_matches_in_phase_energy():
    # same per-channel power, only the polarity differs
    anti = measure_loudness(_anti_phase(0.25, 1.0))
    same = measure_loudness(_in_phase(0.25, 1.0))
    assert anti == pytest.approx(same, abs=0.01)


def test_rms_estimate_sums_channel_power():
    mono = measure_loudness(tone(amplitude=0.5, seconds=0.1, channels=1))
    both = measure_loudness(_in_phase(0.5, 0.1))
    assert both == pytest.approx(mono + 10 * np.log10(2), abs=0.05)
