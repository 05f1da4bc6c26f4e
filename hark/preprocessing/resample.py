"""Sample-rate conversion for the upload normalizer."""

from __future__ import annotations

from fractions import Fraction

import numpy as np
from scipy.signal import resample_poly


def resample(audio: np.ndarray, sample_rate: int, target_sample_rate: int) -> np.ndarray:
    """Polyphase-resample mono ``audio`` from ``sample_rate`` to ``target_sample_rate``.

    The input is returned as-is when the rates already match or it holds no
    samples. The up/down factors are the reduced ratio of the two rates, so
    44.1 kHz to 16 kHz runs as 160/441.
    """
    if sample_rate == target_sample_rate or audio.size == 0:
        return audio

    ratio = Fraction(target_sample_rate, sample_rate)
    return resample_poly(audio, ratio.numerator, ratio.denominator).astype(np.float32)
