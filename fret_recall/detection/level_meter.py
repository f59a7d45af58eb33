"""Input level metering with ambient-noise compensation."""

import math

import numpy as np

from ..logger import get_logger

logger = get_logger(__name__)

SILENCE_RMS = 0.0005
DB_FLOOR = -80.0
SMOOTHING = 0.92
BASELINE_MARGIN = 1.05


class LevelMeter:
    """Tracks a smoothed 0-1 input level for display.

    The first ``baseline_seconds`` of audio are averaged into a baseline RMS
    (ambient noise, microphone AGC) that is subtracted from later frames.
    """

    def __init__(self, sample_rate: int, frame_size: int, baseline_seconds: float = 0.3):
        frame_seconds = frame_size / float(sample_rate)
        self._baseline_frames = max(1, int(math.ceil(baseline_seconds / frame_seconds)))
        self._baseline_sum = 0.0
        self._baseline_count = 0
        self.baseline_rms = 0.0
        self.level = 0.0

    @property
    def calibrated(self) -> bool:
        return self._baseline_count >= self._baseline_frames

    def reset(self) -> None:
        self._baseline_sum = 0.0
        self._baseline_count = 0
        self.baseline_rms = 0.0
        self.level = 0.0

    def update(self, frame: np.ndarray) -> float:
        """Feed one frame and return the smoothed level."""
        samples = np.asarray(frame, dtype=np.float64).ravel()
        samples = samples[np.isfinite(samples)]
        rms = float(np.sqrt(np.mean(samples * samples))) if samples.size else 0.0

        if not self.calibrated:
            self._baseline_sum += rms
            self._baseline_count += 1
            self.baseline_rms = self._baseline_sum / self._baseline_count
            if self.calibrated:
                logger.debug(f"Baseline RMS calibrated: {self.baseline_rms:.5f}")

        if rms < SILENCE_RMS:
            self.level = 0.0
            return self.level

        effective = max(0.0, rms - self.baseline_rms * BASELINE_MARGIN)
        db = 20.0 * math.log10(max(effective, 1e-8))
        instant = min(1.0, max(0.0, (db - DB_FLOOR) / -DB_FLOOR))
        self.level = self.level * SMOOTHING + instant * (1.0 - SMOOTHING)
        return self.level
