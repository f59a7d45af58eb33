"""Fundamental frequency estimators for single audio frames."""

from typing import Optional, Tuple

import numpy as np

from ..core.interfaces import IPitchEstimator
from ..logger import get_logger

logger = get_logger(__name__)


class AutocorrelationEstimator(IPitchEstimator):
    """McLeod pitch method on the normalised square difference function.

    The NSDF is computed in O(n log n) with a zero-padded FFT. Its value at the
    chosen lag doubles as the clarity of the estimate, in [0, 1].
    """

    def __init__(self, sample_rate: int, cutoff: float = 0.9, min_lag: int = 2):
        if sample_rate <= 0:
            raise ValueError("Sample rate must be positive")
        if not 0.0 < cutoff <= 1.0:
            raise ValueError("cutoff must be in (0, 1]")
        self.sample_rate = sample_rate
        self.cutoff = cutoff
        self.min_lag = min_lag

    @staticmethod
    def nsdf(frame: np.ndarray) -> np.ndarray:
        """Normalised square difference for every lag in ``[0, len(frame))``."""
        n = len(frame)
        size = 1 << int(np.ceil(np.log2(2 * n)))
        spectrum = np.fft.rfft(frame, size)
        acf = np.fft.irfft(spectrum * np.conj(spectrum), size)[:n]

        cumulative = np.cumsum(frame * frame)
        lags = np.arange(n)
        head = cumulative[n - 1 - lags]
        tail = cumulative[-1] - np.concatenate(([0.0], cumulative[:-1]))
        energy = head + tail

        result = np.zeros(n)
        np.divide(2.0 * acf, energy, out=result, where=energy > 0)
        return result

    def _key_maxima(self, nsdf: np.ndarray) -> np.ndarray:
        """The highest point of each positive lobe after the first zero crossing."""
        positive = nsdf > 0
        rising = np.flatnonzero(~positive[:-1] & positive[1:]) + 1
        falling = np.flatnonzero(positive[:-1] & ~positive[1:]) + 1
        n = len(nsdf)

        maxima = []
        for start in rising:
            if start < self.min_lag:
                continue
            j = np.searchsorted(falling, start, side="right")
            end = falling[j] if j < len(falling) else n
            idx = start + int(np.argmax(nsdf[start:end]))
            # An unfinished lobe at the end of the frame has no real peak yet
            if idx < n - 1:
                maxima.append(idx)
        return np.asarray(maxima, dtype=int)

    def estimate(self, frame: np.ndarray) -> Optional[Tuple[float, float]]:
        frame = np.asarray(frame, dtype=np.float64)
        if frame.size < 2 * self.min_lag + 1:
            return None
        frame = frame - frame.mean()

        # Lags past half the frame overlap too few samples to be trusted
        nsdf = self.nsdf(frame)[: len(frame) // 2]
        maxima = self._key_maxima(nsdf)
        if maxima.size == 0:
            return None

        highest = nsdf[maxima].max()
        if highest <= 0:
            return None
        chosen = int(maxima[np.argmax(nsdf[maxima] >= self.cutoff * highest)])

        # Parabolic interpolation around the chosen peak
        a, b, c = nsdf[chosen - 1], nsdf[chosen], nsdf[chosen + 1]
        denom = a - 2.0 * b + c
        shift = 0.5 * (a - c) / denom if denom != 0 else 0.0
        lag = chosen + shift
        peak = b - 0.25 * (a - c) * shift

        if lag <= 0:
            return None
        frequency = self.sample_rate / lag
        clarity = float(np.clip(peak, 0.0, 1.0))
        if not np.isfinite(frequency):
            return None
        return float(frequency), clarity


def create_estimator(method: str, sample_rate: int, frame_size: int) -> IPitchEstimator:
    """Build the estimator named by ``method`` ("autocorrelation" or "yin")."""
    if method == "autocorrelation":
        return AutocorrelationEstimator(sample_rate)
    if method == "yin":
        # aubio is an optional extra; only load it when asked for
        from .yin import YinEstimator

        return YinEstimator(sample_rate, frame_size)
    raise ValueError(f"Unknown pitch estimation method: {method!r}")
