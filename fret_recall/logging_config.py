"""Logger levels and console output for Fret Recall.

Every module logs through a logger from fret_recall.logger; this module decides
where those records go and which levels get through.
"""

import logging
import sys
from typing import Optional, Dict

# Log levels for different modules
MODULE_LOG_LEVELS = {
    # Core modules
    "fret_recall": logging.INFO,
    "fret_recall.cli": logging.INFO,
    # Music theory and quiz
    "fret_recall.note_theory": logging.INFO,
    "fret_recall.note_matcher": logging.INFO,  # Set to DEBUG for detailed matching info
    "fret_recall.fretboard": logging.INFO,
    "fret_recall.quiz_session": logging.INFO,
    "fret_recall.stats": logging.INFO,
    # Audio pipeline
    "fret_recall.detection": logging.INFO,  # DEBUG logs every frame
    "fret_recall.services": logging.INFO,
    "fret_recall.tones": logging.WARNING,
    "fret_recall.core": logging.INFO,
    "fret_recall.logger": logging.WARNING,  # Logger module itself should be quiet
    # Libraries/third-party
    "aubio": logging.ERROR,
    # Root logger
    "": logging.ERROR,
}

# Loggers that own the console handler; everything else propagates to them
HANDLER_OWNERS = ("fret_recall", "", "aubio")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_console_handler: Optional[logging.Handler] = None


def _shared_handler() -> logging.Handler:
    global _console_handler
    if _console_handler is None:
        _console_handler = logging.StreamHandler(sys.stdout)
        _console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return _console_handler


def _resolve_levels(level: Optional[str]) -> Dict[str, int]:
    levels = dict(MODULE_LOG_LEVELS)
    if not level:
        return levels
    override = logging.getLevelName(level.upper())
    if not isinstance(override, int):
        logging.getLogger(__name__).error(f"Invalid log level: {level}")
        return levels
    for name in levels:
        if name.startswith("fret_recall"):
            levels[name] = override
    return levels


def setup_logging(level: Optional[str] = None) -> None:
    """Apply the module levels and attach the console handler.

    Args:
        level: Optional level name (e.g. "DEBUG") applied to every fret_recall logger.
            Third-party and root loggers keep their defaults.
    """
    handler = _shared_handler()
    for name, name_level in _resolve_levels(level).items():
        target = logging.getLogger(name)
        target.setLevel(name_level)
        if name not in HANDLER_OWNERS:
            continue
        for existing in list(target.handlers):
            target.removeHandler(existing)
        target.addHandler(handler)
        target.propagate = False

    logging.getLogger("fret_recall").info("Logging configuration complete")


def configured_levels() -> Dict[str, int]:
    """Return the effective level for every configured module logger."""
    return {
        name: logging.getLogger(name).getEffectiveLevel()
        for name in MODULE_LOG_LEVELS
    }
