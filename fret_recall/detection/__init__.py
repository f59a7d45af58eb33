"""Real-time pitch detection pipeline."""

from .estimators import AutocorrelationEstimator, create_estimator
from .level_meter import LevelMeter
from .pitch_detector import PitchDetector
from .stability_analyzer import StabilityAnalyzer

__all__ = [
    "AutocorrelationEstimator",
    "LevelMeter",
    "PitchDetector",
    "StabilityAnalyzer",
    "create_estimator",
]
