from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

from ..logger import get_logger
from ..note_types import Detected

logger = get_logger(__name__)


@dataclass(frozen=True)
class PitchEstimate:
    """One frame's estimate, in continuous pitch-index units."""

    pitch: float
    clarity: float
    frequency: float


class StabilityAnalyzer:
    """
    Analyzes a stream of per-frame pitch estimates to determine when a stable
    note is being played.
    """

    def __init__(
        self,
        min_stable_count: int = 2,
        tolerance_semitones: float = 0.5,
        history_size: int = 4,
    ):
        if min_stable_count < 1:
            raise ValueError("min_stable_count must be at least 1")
        if history_size < min_stable_count:
            raise ValueError("history_size must be at least min_stable_count")
        self._min_stable_count = min_stable_count
        self._tolerance = tolerance_semitones
        self._history: Deque[PitchEstimate] = deque(maxlen=history_size)

    def add(self, estimate: PitchEstimate) -> None:
        """Adds a new estimate to the history for analysis."""
        self._history.append(estimate)

    def clear(self) -> None:
        self._history.clear()

    def __len__(self) -> int:
        return len(self._history)

    def get_stable(self) -> Optional[Detected]:
        """
        Check whether the newest estimates agree.

        Returns:
            A Detected result averaged over the agreeing frames, or None while
            the window is still filling or the pitch is moving.
        """
        if len(self._history) < self._min_stable_count:
            return None

        window = list(self._history)[-self._min_stable_count :]
        newest = window[-1].pitch
        if any(abs(e.pitch - newest) > self._tolerance for e in window):
            logger.debug(
                f"Unstable pitch window: {[round(e.pitch, 2) for e in window]}"
            )
            return None

        count = len(window)
        avg_pitch = sum(e.pitch for e in window) / count
        return Detected(
            pitch_index=int(round(avg_pitch)),
            confidence=sum(e.clarity for e in window) / count,
            frequency=sum(e.frequency for e in window) / count,
        )
