"""Type definitions for the Fret Recall project."""

from typing import Optional, Tuple, Union
from dataclasses import dataclass, field
import time


@dataclass(frozen=True)
class FretPosition:
    """Represents a position on the fretboard."""

    string: int  # String index (0 is the first string of the tuning)
    fret: int  # Fret number (0 for open string)

    def __str__(self):
        return f"S{self.string}F{self.fret}"


@dataclass(frozen=True)
class Card:
    """One quiz challenge: a pitch class to find on a given string."""

    note: str  # Display spelling (e.g., 'F#' or 'Gb')
    pitch_class: int  # 0-11
    string_index: int
    frets: Tuple[int, ...]  # Ascending, never empty
    card_id: int = 0

    def __str__(self):
        return f"{self.note} on S{self.string_index} {list(self.frets)}"


@dataclass(frozen=True)
class AnswerRecord:
    """A single answer appended to SessionStatistics."""

    correct: bool
    string: int
    fret: int
    timestamp: float = field(default_factory=time.time)
    note: Optional[str] = None  # The card's note, when a card was showing
    pitch_class: Optional[int] = None
    tuning: Optional[Tuple[str, ...]] = None  # Tuning names at answer time


@dataclass(frozen=True)
class NoDetection:
    """No usable pitch in this frame (silence, noise or not yet stable)."""

    reason: str = "silence"


@dataclass(frozen=True)
class OutOfRange:
    """A pitch was found but lies outside the configured frequency range."""

    frequency: float


@dataclass(frozen=True)
class Detected:
    """A stable pitch usable as an answer."""

    pitch_index: int
    confidence: float  # 0-1
    frequency: float  # Averaged over the stable window, in Hz


DetectionResult = Union[NoDetection, OutOfRange, Detected]
