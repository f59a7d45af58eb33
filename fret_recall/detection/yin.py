"""YIN pitch estimation backed by aubio."""

from typing import Optional, Tuple

import aubio
import numpy as np

from ..core.interfaces import IPitchEstimator
from ..logger import get_logger

logger = get_logger(__name__)


class YinEstimator(IPitchEstimator):
    """Per-frame YIN estimate; aubio's confidence is used as the clarity."""

    def __init__(
        self,
        sample_rate: int,
        frame_size: int = 2048,
        tolerance: float = 0.8,
        method: str = "yin",
    ):
        if sample_rate <= 0:
            raise ValueError("Sample rate must be positive")
        if not 0.0 <= tolerance <= 1.0:
            raise ValueError("Tolerance must be between 0.0 and 1.0")
        self._frame_size = frame_size
        # Window and hop are equal so no audio is carried from one frame to the next
        self._pitch_detector = aubio.pitch(method, frame_size, frame_size, sample_rate)
        self._pitch_detector.set_unit("Hz")
        self._pitch_detector.set_tolerance(tolerance)
        logger.info(
            f"aubio {method} estimator initialized: sample_rate={sample_rate}, frame_size={frame_size}"
        )

    def estimate(self, frame: np.ndarray) -> Optional[Tuple[float, float]]:
        data = np.asarray(frame, dtype=np.float32)
        if len(data) > self._frame_size:
            data = data[: self._frame_size]
        elif len(data) < self._frame_size:
            padding = np.zeros(self._frame_size - len(data), dtype=np.float32)
            data = np.concatenate((data, padding))

        pitch = float(self._pitch_detector(data)[0])
        confidence = float(self._pitch_detector.get_confidence())
        if pitch <= 0 or not np.isfinite(pitch):
            return None
        return pitch, float(np.clip(confidence, 0.0, 1.0))
