"""Core components for the Fret Recall application."""

# Import interfaces for easier access
from .interfaces import (
    IAudioProvider,
    IPitchEstimator,
)

__all__ = ["IAudioProvider", "IPitchEstimator"]
