"""Tunings and fretboard geometry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .errors import ConfigurationError
from .logger import get_logger
from .note_matcher import parse_note
from .note_theory import (
    SHARP_NOTES,
    is_valid_note,
    midi,
    pitch_class,
)
from .note_types import FretPosition

logger = get_logger(__name__)

MIN_STRINGS = 3
MAX_STRINGS = 10
MIN_OCTAVE = 0
MAX_OCTAVE = 8

# Semitones between added strings when a tuning is padded
PAD_INTERVAL = 5


@dataclass(frozen=True)
class StringTuning:
    """Open-string note of a single string."""

    note: str
    octave: int

    @property
    def pitch(self) -> Optional[int]:
        return midi(self.note, self.octave)

    def __str__(self):
        return f"{self.note}{self.octave}"


class Tuning(Sequence[StringTuning]):
    """Immutable, validated sequence of open strings."""

    def __init__(self, strings: Iterable[StringTuning]):
        self._strings: Tuple[StringTuning, ...] = tuple(strings)
        self._validate()
        self._pitches = tuple(s.pitch for s in self._strings)

    def _validate(self) -> None:
        if not MIN_STRINGS <= len(self._strings) <= MAX_STRINGS:
            raise ConfigurationError(
                f"Tuning must have {MIN_STRINGS}-{MAX_STRINGS} strings, "
                f"got {len(self._strings)}"
            )
        pitches = []
        for s in self._strings:
            if not is_valid_note(s.note):
                raise ConfigurationError(f"Invalid tuning note: {s.note!r}")
            if not isinstance(s.octave, int) or not MIN_OCTAVE <= s.octave <= MAX_OCTAVE:
                raise ConfigurationError(f"Invalid tuning octave: {s.octave!r}")
            if s.pitch is None:
                raise ConfigurationError(f"Unsupported open string: {s}")
            pitches.append(s.pitch)

        steps = [b - a for a, b in zip(pitches, pitches[1:])]
        if not (all(d > 0 for d in steps) or all(d < 0 for d in steps)):
            raise ConfigurationError(
                f"Open strings must be strictly ascending or descending: "
                f"{[str(s) for s in self._strings]}"
            )

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "Tuning":
        """Build a tuning from names such as ``["E2", "A2", "D3"]``."""
        strings = []
        for name in names:
            parsed = parse_note(name)
            if parsed is None or parsed[1] is None:
                raise ConfigurationError(f"Invalid tuning entry: {name!r}")
            strings.append(StringTuning(*parsed))
        return cls(strings)

    @classmethod
    def from_list(cls, items: Iterable[Dict[str, Any]]) -> "Tuning":
        """Build a tuning from ``[{"note": "E", "octave": 2}, ...]``."""
        try:
            return cls(StringTuning(str(i["note"]), i["octave"]) for i in items)
        except (KeyError, TypeError) as e:
            raise ConfigurationError(f"Malformed tuning: {e}") from e

    def to_list(self) -> List[Dict[str, Any]]:
        return [{"note": s.note, "octave": s.octave} for s in self._strings]

    def names(self) -> List[str]:
        return [str(s) for s in self._strings]

    def open_pitch(self, string_index: int) -> int:
        return self._pitches[string_index]

    def open_pitch_class(self, string_index: int) -> int:
        return pitch_class(self._strings[string_index].note)

    def __getitem__(self, index):
        return self._strings[index]

    def __len__(self) -> int:
        return len(self._strings)

    def __iter__(self) -> Iterator[StringTuning]:
        return iter(self._strings)

    def __eq__(self, other) -> bool:
        if isinstance(other, Tuning):
            return self._strings == other._strings
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._strings)

    def __repr__(self) -> str:
        return f"Tuning({self.names()})"


STANDARD_TUNING_NAMES = ["E2", "A2", "D3", "G3", "B3", "E4"]
STANDARD_TUNING = Tuning.from_names(STANDARD_TUNING_NAMES)


def reset_tuning_to_standard() -> Tuning:
    """Return the 6-string standard tuning, low to high, whatever the current string count."""
    return STANDARD_TUNING


def reconcile_tuning(tuning: Tuning, num_strings: int) -> Tuning:
    """Fit a tuning to a string count.

    Extra strings are dropped from the end. Missing strings are added past the
    last string, a perfect fourth apart, continuing the tuning's direction.
    """
    if not MIN_STRINGS <= num_strings <= MAX_STRINGS:
        raise ConfigurationError(f"Unsupported string count: {num_strings}")
    if len(tuning) == num_strings:
        return tuning
    if len(tuning) > num_strings:
        logger.info(f"Truncating tuning {tuning.names()} to {num_strings} strings")
        return Tuning(list(tuning)[:num_strings])

    direction = 1 if tuning.open_pitch(len(tuning) - 1) > tuning.open_pitch(0) else -1
    strings = list(tuning)
    pitch = tuning.open_pitch(len(tuning) - 1)
    while len(strings) < num_strings:
        pitch += direction * PAD_INTERVAL
        if not 12 <= pitch <= 12 * (MAX_OCTAVE + 1) + 11:
            raise ConfigurationError(
                f"Cannot pad tuning {tuning.names()} to {num_strings} strings"
            )
        strings.append(StringTuning(SHARP_NOTES[pitch % 12], pitch // 12 - 1))
    logger.info(f"Padded tuning {tuning.names()} to {[str(s) for s in strings]}")
    return Tuning(strings)


def valid_frets(
    tuning: Tuning, string_index: int, target_pitch_class: int, max_fret: int
) -> List[int]:
    """Frets on a string, ascending, whose note has the target pitch class."""
    open_pc = tuning.open_pitch_class(string_index)
    return [
        f for f in range(max_fret + 1) if (open_pc + f) % 12 == target_pitch_class % 12
    ]


class FretboardModel:
    """A tuning together with a playable fret range."""

    def __init__(self, tuning: Tuning, max_fret: int):
        if max_fret < 0:
            raise ConfigurationError(f"max_fret must be non-negative, got {max_fret}")
        self.tuning = tuning
        self.max_fret = max_fret

    @property
    def num_strings(self) -> int:
        return len(self.tuning)

    def valid_frets(self, string_index: int, target_pitch_class: int) -> List[int]:
        return valid_frets(self.tuning, string_index, target_pitch_class, self.max_fret)

    def pitch_at(self, string_index: int, fret: int) -> int:
        return self.tuning.open_pitch(string_index) + fret

    def positions_for_pitch_class(self, target_pitch_class: int) -> List[FretPosition]:
        """Every position on the board producing the pitch class."""
        return [
            FretPosition(s, f)
            for s in range(self.num_strings)
            for f in self.valid_frets(s, target_pitch_class)
        ]

    def fret_for_pitch(self, string_index: int, pitch_index: int) -> Optional[int]:
        """The fret on a string sounding exactly ``pitch_index``, if in range."""
        fret = pitch_index - self.tuning.open_pitch(string_index)
        if 0 <= fret <= self.max_fret:
            return fret
        return None
