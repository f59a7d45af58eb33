"""Configuration management for Fret Recall components."""

from dataclasses import dataclass, field, replace
from typing import Dict, Any, Optional
import json
import math
import os
from pathlib import Path

from ..errors import ConfigurationError
from ..fretboard import (
    MAX_STRINGS,
    MIN_STRINGS,
    STANDARD_TUNING,
    Tuning,
    reconcile_tuning,
    reset_tuning_to_standard,
)
from ..logger import get_logger
from ..note_theory import VALID_KEYS
from ..stats import STATS_FILENAME, SessionStatistics, load_stats, save_stats

logger = get_logger(__name__)

MIN_FRET_COUNT = 11
MAX_FRET_COUNT = 24
MAX_TIMEOUT_SECONDS = 10.0
MIN_NOISE_FLOOR = 0.0001
MAX_NOISE_FLOOR = 0.01

SETTINGS_FILENAME = "settings.json"


@dataclass(frozen=True)
class Settings:
    """Snapshot of the user's quiz and microphone settings."""

    fret_count: int = 11  # Highest fret in play; fret 0 is always included
    show_accidentals: bool = False
    timeout_seconds: float = 2.0
    num_strings: int = 6
    tuning: Tuning = field(default_factory=lambda: STANDARD_TUNING)
    enable_bias: bool = True
    score_key: str = "C"
    hide_quiz_note: bool = False
    enable_tts: bool = False
    selected_voice: Optional[str] = None
    mic_sensitivity: float = 0.5  # 0.0 = very sensitive, 1.0 = less sensitive
    mic_clarity_threshold: float = 0.3  # Minimum clarity required for pitch detection
    mic_noise_floor: float = 0.0005  # RMS threshold below which input is silence

    def validate(self) -> "Settings":
        """Check every field, raising ConfigurationError on the first bad one."""
        if not isinstance(self.fret_count, int) or not (
            MIN_FRET_COUNT <= self.fret_count <= MAX_FRET_COUNT
        ):
            raise ConfigurationError(
                f"fret_count must be {MIN_FRET_COUNT}-{MAX_FRET_COUNT}, got {self.fret_count!r}"
            )
        if not _is_number(self.timeout_seconds) or not (
            0 <= self.timeout_seconds <= MAX_TIMEOUT_SECONDS
        ):
            raise ConfigurationError(f"Invalid timeout_seconds: {self.timeout_seconds!r}")
        if not isinstance(self.num_strings, int) or not (
            MIN_STRINGS <= self.num_strings <= MAX_STRINGS
        ):
            raise ConfigurationError(f"Invalid num_strings: {self.num_strings!r}")
        if not isinstance(self.tuning, Tuning):
            raise ConfigurationError(f"Invalid tuning: {self.tuning!r}")
        if len(self.tuning) != self.num_strings:
            raise ConfigurationError(
                f"Tuning has {len(self.tuning)} strings but num_strings is {self.num_strings}"
            )
        if self.score_key not in VALID_KEYS:
            raise ConfigurationError(f"Invalid score_key: {self.score_key!r}")
        for name in ("mic_sensitivity", "mic_clarity_threshold"):
            value = getattr(self, name)
            if not _is_number(value) or not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"Invalid {name}: {value!r}")
        if not _is_number(self.mic_noise_floor) or not (
            MIN_NOISE_FLOOR <= self.mic_noise_floor <= MAX_NOISE_FLOOR
        ):
            raise ConfigurationError(f"Invalid mic_noise_floor: {self.mic_noise_floor!r}")
        return self

    def with_num_strings(self, num_strings: int) -> "Settings":
        """Change the string count, reconciling the tuning to match."""
        return replace(
            self,
            num_strings=num_strings,
            tuning=reconcile_tuning(self.tuning, num_strings),
        )

    def with_standard_tuning(self) -> "Settings":
        """Reset to standard tuning; this always means six strings."""
        return replace(self, num_strings=6, tuning=reset_tuning_to_standard())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fretCount": self.fret_count,
            "showAccidentals": self.show_accidentals,
            "timeoutSeconds": self.timeout_seconds,
            "numStrings": self.num_strings,
            "tuning": self.tuning.to_list(),
            "enableBias": self.enable_bias,
            "scoreKey": self.score_key,
            "hideQuizNote": self.hide_quiz_note,
            "enableTTS": self.enable_tts,
            "selectedVoice": self.selected_voice,
            "micSensitivity": self.mic_sensitivity,
            "micClarityThreshold": self.mic_clarity_threshold,
            "micNoiseFloor": self.mic_noise_floor,
        }

    @classmethod
    def from_dict(cls, raw: Any, defaults: Optional["Settings"] = None) -> "Settings":
        """Apply stored values on top of defaults, ignoring anything invalid."""
        settings = defaults or cls()
        if not isinstance(raw, dict):
            return settings
        updates: Dict[str, Any] = {}

        # Older files stored a boolean instead of a fret count
        if "extendedRange" in raw:
            updates["fret_count"] = MAX_FRET_COUNT if raw["extendedRange"] else MIN_FRET_COUNT
        elif "fretCount" in raw:
            value = _as_int(raw["fretCount"])
            if value is not None and MIN_FRET_COUNT <= value <= MAX_FRET_COUNT:
                updates["fret_count"] = value

        if "timeoutSeconds" in raw:
            value = _as_float(raw["timeoutSeconds"])
            if value is not None and 0 <= value <= MAX_TIMEOUT_SECONDS:
                updates["timeout_seconds"] = value

        num_strings = settings.num_strings
        if "numStrings" in raw:
            value = _as_int(raw["numStrings"])
            if value is not None and MIN_STRINGS <= value <= MAX_STRINGS:
                num_strings = value
                updates["num_strings"] = value

        tuning = settings.tuning
        if "tuning" in raw:
            try:
                tuning = Tuning.from_list(raw["tuning"])
            except ConfigurationError as e:
                logger.warning(f"Ignoring stored tuning: {e}")
        try:
            updates["tuning"] = reconcile_tuning(tuning, num_strings)
        except ConfigurationError as e:
            logger.warning(f"Falling back to standard tuning: {e}")
            updates["num_strings"] = len(STANDARD_TUNING)
            updates["tuning"] = STANDARD_TUNING

        if raw.get("scoreKey") in VALID_KEYS:
            updates["score_key"] = raw["scoreKey"]

        for key, attr in (
            ("showAccidentals", "show_accidentals"),
            ("enableBias", "enable_bias"),
            ("hideQuizNote", "hide_quiz_note"),
            ("enableTTS", "enable_tts"),
        ):
            if key in raw:
                updates[attr] = bool(raw[key])

        if isinstance(raw.get("selectedVoice"), str):
            updates["selected_voice"] = raw["selectedVoice"]

        for key, attr, low, high in (
            ("micSensitivity", "mic_sensitivity", 0.0, 1.0),
            ("micClarityThreshold", "mic_clarity_threshold", 0.0, 1.0),
            ("micNoiseFloor", "mic_noise_floor", MIN_NOISE_FLOOR, MAX_NOISE_FLOOR),
        ):
            value = _as_float(raw.get(key))
            if value is not None and low <= value <= high:
                updates[attr] = value

        return replace(settings, **updates)


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_int(value: Any) -> Optional[int]:
    number = _as_float(value)
    if number is None or number != int(number):
        return None
    return int(number)


class ConfigManager:
    """Persists settings and statistics as JSON files."""

    def __init__(self, config_dir: Optional[str] = None):
        """Initialize the configuration manager.

        Args:
            config_dir: Directory to store configuration files, or None to use default
        """
        if config_dir is None:
            # Use ~/.config/fret_recall by default
            home = os.path.expanduser("~")
            config_dir = os.path.join(home, ".config", "fret_recall")

        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

    @property
    def settings_path(self) -> Path:
        return self.config_dir / SETTINGS_FILENAME

    @property
    def stats_path(self) -> Path:
        return self.config_dir / STATS_FILENAME

    def load_settings(self) -> Settings:
        """Load settings from file, falling back to defaults."""
        if not self.settings_path.exists():
            return Settings()
        try:
            with open(self.settings_path, "r") as f:
                raw = json.load(f)
            logger.info(f"Loaded settings from {self.settings_path}")
            return Settings.from_dict(raw)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading settings from {self.settings_path}: {e}")
            return Settings()

    def save_settings(self, settings: Settings) -> bool:
        """Save settings to file.

        Returns:
            True if saved successfully, False otherwise
        """
        try:
            with open(self.settings_path, "w") as f:
                json.dump(settings.to_dict(), f, indent=2)
            logger.info(f"Saved settings to {self.settings_path}")
            return True
        except OSError as e:
            logger.error(f"Error saving settings to {self.settings_path}: {e}")
            return False

    def load_statistics(self) -> SessionStatistics:
        return load_stats(str(self.stats_path))

    def save_statistics(self, stats: SessionStatistics) -> bool:
        return save_stats(stats, str(self.stats_path))
