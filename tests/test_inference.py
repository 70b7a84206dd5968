from __future__ import annotations

import numpy as np
import pytest

import masterflow.inference as inference
from masterflow.dsp_engine.noise import NoiseSuppressionStage
from masterflow.dsp_engine.pipeline import MasteringPipeline
from masterflow.dsp_engine.settings import ProcessingSettings
from masterflow.inference import (
    InferenceService,
    PassthroughInference,
    SpectralGateInference,
    build_inference,
)

from helpers import noisy_mix


def _recording_reduce_noise(calls):
    def fake(y, sr, prop_decrease=1.0, **kwargs):
        calls.append(prop_decrease)
        return y

    return fake


def test_build_inference_kinds():
    assert isinstance(build_inference(), PassthroughInference)
    assert isinstance(build_inference("spectral"), SpectralGateInference)
    with pytest.raises(ValueError):
        build_inference("neural")


def test_base_service_is_abstract():
    with pytest.raises(TypeError):
        InferenceService()


def test_passthrough_is_ready_and_copies():
    backend = PassthroughInference()
    buf = noisy_mix(seconds=0.1)
    assert backend.initialize()
    out = backend.enhance(buf, 1.0, False)
    assert out is not buf
    assert np.array_equal(out.samples, buf.samples)


def test_spectral_gate_warms_up():
    backend = SpectralGateInference()
    assert not backend.is_ready()
    assert backend.status() == {"backend": "spectral", "ready": False}
    assert backend.initialize()
    assert backend.is_ready()
    assert backend.status()["ready"] is True


def test_spectral_gate_not_ready_when_warm_up_fails(monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("no fft backend")

    monkeypatch.setattr(inference.nr, "reduce_noise", broken)
    backend = SpectralGateInference()
    assert not backend.initialize()
    assert not backend.is_ready()


def test_spectral_gate_halves_strength_when_preserving(monkeypatch):
    calls = []
    monkeypatch.setattr(inference.nr, "reduce_noise", _recording_reduce_noise(calls))
    backend = SpectralGateInference(max_strength=0.8)
    buf = noisy_mix(seconds=0.2, channels=1)

    backend.enhance(buf, 1.0, preserve_tone=False)
    backend.enhance(buf, 1.0, preserve_tone=True)

    assert calls[0] == pytest.approx(0.8)
    assert calls[1] == pytest.approx(0.4)


def test_spectral_gate_skips_short_or_zero_amount(monkeypatch):
    calls = []
    monkeypatch.setattr(inference.nr, "reduce_noise", _recording_reduce_noise(calls))
    backend = SpectralGateInference(n_fft=2048)

    short = noisy_mix(seconds=0.02)
    out = backend.enhance(short, 1.0, False)
    assert short.frame_count < 2048
    assert np.array_equal(out.samples, short.samples)

    long = noisy_mix(seconds=0.2)
    out = backend.enhance(long, 0.0, False)
    assert np.array_equal(out.samples, long.samples)
    assert calls == []


def test_spectral_gate_keeps_shape():
    backend = SpectralGateInference()
    assert backend.initialize()
    buf = noisy_mix(seconds=0.5)
    out = backend.enhance(buf, 0.8, preserve_tone=False)
    assert out.samples.shape == buf.samples.shape
    assert np.all(np.isfinite(out.samples))
    assert not np.array_equal(out.samples, buf.samples)


def test_pipeline_with_spectral_gate():
    backend = SpectralGateInference()
    assert backend.initialize()
    pipeline = MasteringPipeline(enhancer=backend)
    buf = noisy_mix(seconds=0.5)

    keep_settings = ProcessingSettings(noise_reduction=70.0, preserve_tone=True)
    full_settings = ProcessingSettings(noise_reduction=70.0, preserve_tone=False)
    wet_keep, keep = pipeline.run(buf, keep_settings)
    wet_full, full = pipeline.run(buf, full_settings)

    for wet in (wet_keep, wet_full):
        assert wet.samples.shape == buf.samples.shape
        assert np.all(np.isfinite(wet.samples))
    assert keep.noise_reduction < full.noise_reduction

    keep_noise = pipeline.build_stages(keep_settings)[0]
    full_noise = pipeline.build_stages(full_settings)[0]
    assert isinstance(keep_noise, NoiseSuppressionStage)
    assert keep_noise.coeffs.cutoff_hz < full_noise.coeffs.cutoff_hz
    assert keep_noise.coeffs.ratio < full_noise.coeffs.ratio
    assert keep_noise.coeffs.attack_ms > full_noise.coeffs.attack_ms
    assert keep_noise.coeffs.release_ms > full_noise.coeffs.release_ms


def test_noise_stage_output_changes_with_spectral_gate():
    buf = noisy_mix(seconds=0.5)
    backend = SpectralGateInference()
    assert backend.initialize()
    gated = NoiseSuppressionStage(enhancer=backend).process(buf)
    plain = NoiseSuppressionStage(enhancer=PassthroughInference()).process(buf)
    assert gated.samples.shape == plain.samples.shape
    assert not np.array_equal(gated.samples, plain.samples)
