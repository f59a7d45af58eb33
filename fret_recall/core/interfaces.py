"""Defines the core interfaces for the Fret Recall application."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Callable, Optional, Tuple

import numpy as np


class IAudioProvider(ABC):
    """An abstract interface for audio providers."""

    @abstractmethod
    def start(self, on_data_callback: Callable[[np.ndarray], None]) -> None:
        """Starts the audio stream, calling the callback with float32 frames."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stops the audio stream."""
        pass

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        """The sample rate of the audio stream."""
        pass

    @property
    @abstractmethod
    def channels(self) -> int:
        """The number of channels in the audio stream."""
        pass


class IPitchEstimator(ABC):
    """Interface for single-frame fundamental frequency estimators."""

    @abstractmethod
    def estimate(self, frame: np.ndarray) -> Optional[Tuple[float, float]]:
        """Estimate ``(frequency_hz, clarity)`` for one mono frame, or None."""
        pass
