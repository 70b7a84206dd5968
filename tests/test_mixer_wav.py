from __future__ import annotations

import io
import struct

import numpy as np
import pytest
import soundfile as sf

from masterflow.dsp_engine.buffer import WaveformBuffer
from masterflow.dsp_engine.mixer import mix_dry_wet
from masterflow.dsp_engine.wav import HEADER_SIZE, encode_wav, parse_wav_header, pcm16, write_wav
from masterflow.errors import DimensionMismatch

from helpers import noisy_mix, tone


def _pair():
    dry = noisy_mix(seconds=0.1)
    wet = dry.with_samples(dry.samples[::-1] * 0.7)
    return dry, wet


def test_mix_extremes_return_inputs():
    dry, wet = _pair()
    assert mix_dry_wet(dry, wet, 100) is wet
    assert mix_dry_wet(dry, wet, 150) is wet
    assert mix_dry_wet(dry, wet, 0) is dry
    assert mix_dry_wet(dry, wet, -5) is dry


def test_mix_half_is_average():
    dry, wet = _pair()
    mixed = mix_dry_wet(dry, wet, 50)
    expected = (dry.samples.astype(np.float64) + wet.samples.astype(np.float64)) / 2
    assert np.allclose(mixed.samples, expected, atol=1e-6)


def test_mix_quarter():
    dry, wet = _pair()
    mixed = mix_dry_wet(dry, wet, 25)
    assert np.allclose(mixed.samples, 0.75 * dry.samples + 0.25 * wet.samples, atol=1e-6)


@pytest.mark.parametrize(
    "other",
    [
        WaveformBuffer.silent(44100, 1, 4410),
        WaveformBuffer.silent(44100, 2, 4000),
        WaveformBuffer.silent(48000, 2, 4410),
    ],
)
def test_mix_rejects_mismatched_buffers(other):
    dry = WaveformBuffer.silent(44100, 2, 4410)
    with pytest.raises(DimensionMismatch):
        mix_dry_wet(dry, other, 50)


def test_header_fields_for_cd_stereo():
    data = encode_wav(WaveformBuffer.silent(44100, 2, 1000))
    assert len(data) == HEADER_SIZE + 4000
    assert data[0:4] == b"RIFF"
    assert struct.unpack_from("<I", data, 4)[0] == 4036
    assert data[8:12] == b"WAVE"
    assert data[12:16] == b"fmt "
    assert struct.unpack_from("<IHHIIHH", data, 16) == (16, 1, 2, 44100, 176400, 4, 16)
    assert data[36:40] == b"data"
    assert struct.unpack_from("<I", data, 40)[0] == 4000

    header = parse_wav_header(data)
    assert header.data_length == 4000
    assert header.riff_size == 4036
    assert header.block_align == 4


def test_external_decoder_reads_encoded_file():
    source = tone(seconds=0.1, channels=2)
    buf = source.with_samples(source.samples[:, :1000])
    data = encode_wav(buf)
    decoded, sr = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
    info = sf.info(io.BytesIO(data))
    assert sr == 44100
    assert decoded.shape == (1000, 2)
    assert info.subtype == "PCM_16"
    assert np.allclose(decoded.T, buf.samples, atol=1e-4)


def test_pcm_scaling_is_asymmetric_and_truncates():
    samples = np.array([-1.0, -0.5, -0.3, 0.0, 0.5, 1.0, 2.0, -2.0], dtype=np.float32)
    assert pcm16(samples).tolist() == [-32768, -16384, -9830, 0, 16383, 32767, 32767, -32768]


def test_samples_are_interleaved_per_frame():
    buf = WaveformBuffer(sample_rate=8000, samples=np.array([[0.5, 0.5], [-0.5, -0.5]]))
    data = encode_wav(buf)
    frames = np.frombuffer(data[HEADER_SIZE:], dtype="<i2")
    assert frames.tolist() == [16383, -16384, 16383, -16384]


def test_parse_rejects_truncated_payload():
    data = encode_wav(WaveformBuffer.silent(8000, 1, 10))
    with pytest.raises(DimensionMismatch):
        parse_wav_header(data[:-2])
    with pytest.raises(DimensionMismatch):
        parse_wav_header(data[:20])


def test_write_wav(tmp_path):
    path = write_wav(tmp_path / "out.wav", WaveformBuffer.silent(8000, 1, 8))
    assert path.read_bytes()[:4] == b"RIFF"


def test_non_finite_samples_encode_safely():
    samples = np.array([np.nan, np.inf, -np.inf, 0.25], dtype=np.float64)
    assert pcm16(samples).tolist() == [0, 32767, -32768, 8191]
    data = encode_wav(WaveformBuffer(sample_rate=8000, samples=samples))
    assert np.frombuffer(data[HEADER_SIZE:], dtype="<i2").tolist() == [0, 32767, -32768, 8191]
