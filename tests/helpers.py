from __future__ import annotations

import numpy as np

from masterflow.dsp_engine.buffer import WaveformBuffer

SR = 44100


def tone(freq: float = 440.0, amplitude: float = 0.5, seconds: float = 1.0, channels: int = 2, sr: int = SR) -> WaveformBuffer:
    t = np.arange(int(sr * seconds)) / sr
    mono = amplitude * np.sin(2 * np.pi * freq * t)
    rows = [mono * (1.0 - 0.1 * ch) for ch in range(channels)]
    return WaveformBuffer(sample_rate=sr, samples=np.stack(rows))


def noisy_mix(seconds: float = 1.0, channels: int = 2, sr: int = SR, seed: int = 7) -> WaveformBuffer:
    rng = np.random.default_rng(seed)
    t = np.arange(int(sr * seconds)) / sr
    rows = []
    for ch in range(channels):
        body = 0.3 * np.sin(2 * np.pi * (110.0 + 20 * ch) * t)
        clicks = (np.sin(2 * np.pi * 2.0 * t) > 0.995) * 0.4
        rows.append(body + clicks + 0.02 * rng.standard_normal(t.size))
    return WaveformBuffer(sample_rate=sr, samples=np.stack(rows))


