"""Pitch detection for fixed-size audio frames."""

from __future__ import annotations
import math
from typing import ClassVar, Optional, TYPE_CHECKING

import numpy as np

from ..core.interfaces import IPitchEstimator
from ..logger import get_logger
from ..note_theory import MAX_PITCH_INDEX, MIN_PITCH_INDEX, frequency_to_midi
from ..note_types import DetectionResult, NoDetection, OutOfRange
from .estimators import create_estimator
from .stability_analyzer import PitchEstimate, StabilityAnalyzer

if TYPE_CHECKING:
    from ..core.config import Settings

logger = get_logger(__name__)


class PitchDetector:
    """Turns one audio frame at a time into a DetectionResult.

    Each call is bounded by the frame length and never raises for bad sample
    data: NaN and infinite samples are discarded, silence and noise become
    NoDetection. The only state kept between frames is the bounded stability
    window, so one detector must not be shared between audio streams.
    """

    DEFAULT_FRAME_SIZE: ClassVar[int] = 2048
    DEFAULT_NOISE_FLOOR: ClassVar[float] = 0.0005  # RMS below this is silence
    DEFAULT_CLARITY_THRESHOLD: ClassVar[float] = 0.3
    MIN_FREQUENCY: ClassVar[float] = 80.0  # Hz
    MAX_FREQUENCY: ClassVar[float] = 2000.0  # Hz

    def __init__(
        self,
        sample_rate: int = 44100,
        frame_size: int = DEFAULT_FRAME_SIZE,
        noise_floor: float = DEFAULT_NOISE_FLOOR,
        clarity_threshold: float = DEFAULT_CLARITY_THRESHOLD,
        min_frequency: float = MIN_FREQUENCY,
        max_frequency: float = MAX_FREQUENCY,
        min_stable_count: int = 2,
        stability_semitones: float = 0.5,
        history_size: int = 4,
        method: str = "autocorrelation",
        estimator: Optional[IPitchEstimator] = None,
    ) -> None:
        """Initialize the PitchDetector.

        Args:
            sample_rate: Audio sample rate in Hz, fixed for the detector's life
            frame_size: Expected samples per frame (used by fixed-size estimators)
            noise_floor: RMS below which a frame counts as silence
            clarity_threshold: Minimum estimator clarity (0-1) to accept a pitch
            min_frequency: Lowest accepted fundamental in Hz
            max_frequency: Highest accepted fundamental in Hz
            min_stable_count: Consecutive agreeing frames needed for a detection
            stability_semitones: How far (in semitones) agreeing frames may differ
            history_size: Frames kept in the stability window
            method: "autocorrelation" (numpy) or "yin" (aubio)
            estimator: Use this estimator instead of building one from ``method``
        """
        if sample_rate <= 0:
            raise ValueError("Sample rate must be positive")
        if not 0 < min_frequency < max_frequency:
            raise ValueError("Frequency range must satisfy 0 < min < max")
        if noise_floor < 0:
            raise ValueError("noise_floor must not be negative")
        if not 0.0 <= clarity_threshold <= 1.0:
            raise ValueError("clarity_threshold must be between 0.0 and 1.0")

        self._sample_rate = sample_rate
        self._frame_size = frame_size
        self._noise_floor = noise_floor
        self._clarity_threshold = clarity_threshold
        self._min_frequency = min_frequency
        self._max_frequency = max_frequency
        self._estimator = estimator or create_estimator(method, sample_rate, frame_size)
        self._stability = StabilityAnalyzer(
            min_stable_count=min_stable_count,
            tolerance_semitones=stability_semitones,
            history_size=history_size,
        )
        self.last_rms = 0.0

        logger.info(
            f"Pitch detector initialized: sample_rate={sample_rate}, frame_size={frame_size}, "
            f"range={min_frequency:.0f}-{max_frequency:.0f}Hz"
        )

    @classmethod
    def from_settings(
        cls, settings: "Settings", sample_rate: int, **kwargs
    ) -> "PitchDetector":
        """Build a detector using the microphone settings.

        Sensitivity scales the noise floor: 0.5 keeps it as configured,
        lower values make the gate more sensitive.
        """
        noise_floor = settings.mic_noise_floor * (0.5 + settings.mic_sensitivity)
        return cls(
            sample_rate=sample_rate,
            noise_floor=noise_floor,
            clarity_threshold=settings.mic_clarity_threshold,
            **kwargs,
        )

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def frame_size(self) -> int:
        return self._frame_size

    def reset(self) -> None:
        """Forget the stability window, e.g. when a new card is shown."""
        self._stability.clear()

    def _unstable(self, result: DetectionResult) -> DetectionResult:
        self._stability.clear()
        return result

    def process(self, frame) -> DetectionResult:
        """Run one detection cycle over a frame of samples in [-1, 1]."""
        try:
            samples = np.asarray(frame, dtype=np.float64)
        except (TypeError, ValueError):
            logger.debug("Discarding frame that is not numeric")
            return self._unstable(NoDetection("invalid"))

        if samples.ndim > 1:
            # Down-mix multi-channel audio, ignoring non-finite channels per sample
            finite = np.isfinite(samples)
            counts = finite.sum(axis=-1)
            sums = np.where(finite, samples, 0.0).sum(axis=-1)
            samples = np.full(counts.shape, np.nan)
            np.divide(sums, counts, out=samples, where=counts > 0)
            samples = samples.ravel()

        samples = samples[np.isfinite(samples)]
        if samples.size == 0:
            self.last_rms = 0.0
            return self._unstable(NoDetection("empty"))
        samples = np.clip(samples, -1.0, 1.0)

        rms = float(np.sqrt(np.mean(samples * samples)))
        self.last_rms = rms
        if rms < self._noise_floor:
            logger.debug(f"Signal too weak: RMS {rms:.5f} < {self._noise_floor:.5f}")
            return self._unstable(NoDetection("silence"))

        estimate = self._estimator.estimate(samples)
        if estimate is None:
            return self._unstable(NoDetection("unclear"))
        frequency, clarity = estimate
        if not (math.isfinite(frequency) and math.isfinite(clarity)):
            return self._unstable(NoDetection("unclear"))
        if clarity < self._clarity_threshold:
            logger.debug(f"Low clarity {clarity:.2f} at {frequency:.1f}Hz")
            return self._unstable(NoDetection("unclear"))

        if not self._min_frequency <= frequency <= self._max_frequency:
            logger.debug(f"Frequency out of range: {frequency:.1f}Hz")
            return self._unstable(OutOfRange(frequency))

        pitch = frequency_to_midi(frequency)
        if pitch is None or not MIN_PITCH_INDEX <= round(pitch) <= MAX_PITCH_INDEX:
            return self._unstable(OutOfRange(frequency))

        self._stability.add(PitchEstimate(pitch, clarity, frequency))
        detected = self._stability.get_stable()
        if detected is None:
            return NoDetection("unstable")

        logger.debug(
            f"Detected pitch {detected.pitch_index} ({detected.frequency:.1f}Hz, "
            f"clarity {detected.confidence:.2f}, rms {rms:.4f})"
        )
        return detected
