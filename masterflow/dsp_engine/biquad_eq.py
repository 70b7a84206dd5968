"""Biquad filters built on SciPy.

Coefficients follow the RBJ audio-EQ cookbook and are stored in sos
form so sections can be cascaded with ``sosfilt``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np
from scipy.signal import sosfilt

FilterType = Literal["highpass", "lowpass"]

BUTTERWORTH_Q = 1.0 / np.sqrt(2.0)


@dataclass
class BiquadFilter:
    """One or more cascaded biquad sections."""

    sos: np.ndarray  # shape (n_sections, 6)

    def process(self, x: np.ndarray) -> np.ndarray:
        """Apply the filter to [samples] or [channels, samples]."""

        if x.ndim == 1:
            return np.asarray(sosfilt(self.sos, x.astype(np.float64)), dtype=np.float32)

        y = np.empty(x.shape, dtype=np.float32)
        for ch in range(x.shape[0]):
            y[ch] = sosfilt(self.sos, x[ch].astype(np.float64))
        return y

    def cascade(self, other: "BiquadFilter") -> "BiquadFilter":
        return BiquadFilter(sos=np.vstack([self.sos, other.sos]))


def clamp_freq(freq: float, sr: int) -> float:
    nyq = sr * 0.5
    return float(np.clip(freq, 10.0, nyq * 0.9))


def _clamp_q(q: float) -> float:
    return float(np.clip(q, 0.1, 10.0))


def design_biquad(ftype: FilterType, freq: float, sr: int, q: float = BUTTERWORTH_Q) -> BiquadFilter:
    """Design a single second-order section."""

    if sr <= 0:
        raise ValueError(f"sample rate must be positive, got {sr}")

    freq = clamp_freq(freq, sr)
    q = _clamp_q(q)

    w0 = 2.0 * np.pi * freq / sr
    cos_w0 = np.cos(w0)
    alpha = np.sin(w0) / (2.0 * q)

    if ftype == "highpass":
        b = np.array([(1.0 + cos_w0) / 2.0, -(1.0 + cos_w0), (1.0 + cos_w0) / 2.0])
    elif ftype == "lowpass":
        b = np.array([(1.0 - cos_w0) / 2.0, 1.0 - cos_w0, (1.0 - cos_w0) / 2.0])
    else:
        raise ValueError(f"Unsupported filter type: {ftype}")

    a = np.array([1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha])
    sos = np.concatenate([b / a[0], a / a[0]])[np.newaxis, :]
    return BiquadFilter(sos=sos.astype(np.float64))


def linkwitz_riley(ftype: FilterType, freq: float, sr: int) -> BiquadFilter:
    """4th-order Linkwitz-Riley section (two cascaded Butterworth biquads)."""

    section = design_biquad(ftype, freq, sr, q=BUTTERWORTH_Q)
    return section.cascade(section)
