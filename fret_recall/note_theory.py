"""Pure functions for note names, pitch classes, MIDI numbers and spellings."""

import math
from typing import Dict, List, Optional, Tuple

from .errors import InvalidNoteError
from .logger import get_logger

logger = get_logger(__name__)

# Note constants
NATURAL_NOTES: List[str] = ["C", "D", "E", "F", "G", "A", "B"]
SHARP_NOTES: List[str] = [
    "C",
    "C#",
    "D",
    "D#",
    "E",
    "F",
    "F#",
    "G",
    "G#",
    "A",
    "A#",
    "B",
]
FLAT_NOTES: List[str] = ["Db", "Eb", "Gb", "Ab", "Bb"]

# The 17 canonical spellings, in chromatic order
NOTE_VARIANTS: Dict[str, int] = {
    "C": 0,
    "C#": 1,
    "Db": 1,
    "D": 2,
    "D#": 3,
    "Eb": 3,
    "E": 4,
    "F": 5,
    "F#": 6,
    "Gb": 6,
    "G": 7,
    "G#": 8,
    "Ab": 8,
    "A": 9,
    "A#": 10,
    "Bb": 10,
    "B": 11,
}

MIN_PITCH_INDEX = 0
MAX_PITCH_INDEX = 127
A4_FREQUENCY = 440.0
A4_PITCH_INDEX = 69

# Accidentals each key signature prefers when a pitch class is ambiguous
KEY_PREFERENCES: Dict[str, List[str]] = {
    # Sharp keys prefer sharps
    "G": ["F#"],
    "D": ["F#", "C#"],
    "A": ["F#", "C#", "G#"],
    "E": ["F#", "C#", "G#", "D#"],
    "B": ["F#", "C#", "G#", "D#", "A#"],
    "F#": ["F#", "C#", "G#", "D#", "A#", "E#"],
    "C#": ["F#", "C#", "G#", "D#", "A#", "E#", "B#"],
    # Flat keys prefer flats
    "F": ["Bb"],
    "Bb": ["Bb", "Eb"],
    "Eb": ["Bb", "Eb", "Ab"],
    "Ab": ["Bb", "Eb", "Ab", "Db"],
    "Db": ["Bb", "Eb", "Ab", "Db", "Gb"],
    "Gb": ["Bb", "Eb", "Ab", "Db", "Gb", "Cb"],
    "Cb": ["Bb", "Eb", "Ab", "Db", "Gb", "Cb", "Fb"],
    # C major has no preference
    "C": [],
}

VALID_KEYS: List[str] = list(KEY_PREFERENCES.keys())


def _ascii_accidentals(note: str) -> str:
    return note.replace("♯", "#").replace("♭", "b")


def is_valid_note(note: str) -> bool:
    """True iff ``note`` is exactly one of the 17 canonical spellings.

    The check is case-sensitive and performs no normalization.
    """
    return isinstance(note, str) and note in NOTE_VARIANTS


def pitch_class(note: str) -> int:
    """Map a canonical note name to its pitch class (C=0 ... B=11).

    Raises:
        InvalidNoteError: if ``note`` is not a canonical spelling
    """
    try:
        return NOTE_VARIANTS[note]
    except (KeyError, TypeError):
        raise InvalidNoteError(f"Invalid note: {note!r}") from None


def midi(note: str, octave: int) -> Optional[int]:
    """Calculate the MIDI-style pitch index for a note name and octave.

    Octave 4 spans 60-71 (C4 is middle C).

    Returns:
        The pitch index, or None when it falls outside [0, 127]
        (an unsupported octave).
    """
    value = pitch_class(note) + 12 * (int(octave) + 1)
    if value < MIN_PITCH_INDEX or value > MAX_PITCH_INDEX:
        logger.debug(f"Unsupported octave: {note}{octave} -> {value}")
        return None
    return value


def are_equivalent(a: str, b: str) -> bool:
    """Check if two note names are enharmonically equivalent (e.g., C# and Db)."""
    if not is_valid_note(a) or not is_valid_note(b):
        return False
    return NOTE_VARIANTS[a] == NOTE_VARIANTS[b]


def midi_to_frequency(pitch_index: float) -> float:
    """Convert a pitch index to its equal-tempered frequency in Hz."""
    return A4_FREQUENCY * 2.0 ** ((pitch_index - A4_PITCH_INDEX) / 12.0)


def frequency_to_midi(frequency: float) -> Optional[float]:
    """Convert a frequency in Hz to a continuous (unrounded) pitch index.

    Returns None for non-positive or non-finite frequencies.
    """
    if not isinstance(frequency, (int, float)) or not math.isfinite(frequency):
        return None
    if frequency <= 0:
        return None
    return 12.0 * math.log2(frequency / A4_FREQUENCY) + A4_PITCH_INDEX


def note_variants(pc: int) -> List[str]:
    """Get all spellings for a pitch class, sharps before flats."""
    pc = pc % 12
    return [name for name, idx in NOTE_VARIANTS.items() if idx == pc]


def is_natural_note(note: str) -> bool:
    return note in NATURAL_NOTES


def is_sharp_note(note: str) -> bool:
    return "#" in _ascii_accidentals(note)


def is_flat_note(note: str) -> bool:
    return "b" in _ascii_accidentals(note)[1:]


def enharmonic_for_key(pc: int, key_signature: str = "C") -> str:
    """Get the spelling of a pitch class preferred by a key signature.

    Naturals are always spelled naturally. For accidentals the first matching
    entry of the key's preference list wins, falling back to the sharp spelling.
    """
    pc = pc % 12
    natural = SHARP_NOTES[pc]
    if is_natural_note(natural):
        return natural

    possible = note_variants(pc)
    for preferred in KEY_PREFERENCES.get(key_signature, []):
        if preferred in possible:
            return preferred

    return possible[0] if possible else natural


def nearest_note_name(
    pitch_index: int,
    preferred_spelling: Optional[str] = None,
    key_signature: str = "C",
) -> str:
    """Resolve a pitch index back to a display spelling.

    An explicit flat or sharp in ``preferred_spelling`` (e.g. the quiz card's
    note) wins; otherwise the key signature decides. Deterministic for the same
    inputs.
    """
    pc = int(pitch_index) % 12
    preferred = _ascii_accidentals(preferred_spelling or "")

    if preferred and is_flat_note(preferred):
        for name in note_variants(pc):
            if "b" in name:
                return name
    elif preferred and is_sharp_note(preferred):
        for name in note_variants(pc):
            if "#" in name:
                return name

    return enharmonic_for_key(pc, key_signature)


def note_and_octave(
    pitch_index: int,
    preferred_spelling: Optional[str] = None,
    key_signature: str = "C",
) -> Tuple[str, int]:
    """Convert a pitch index to ``(note_name, octave)``."""
    octave = int(pitch_index) // 12 - 1
    return nearest_note_name(pitch_index, preferred_spelling, key_signature), octave


def notes_for_quiz(show_accidentals: bool) -> List[str]:
    """Get the note names a quiz draws from."""
    if show_accidentals:
        return SHARP_NOTES + FLAT_NOTES
    return list(NATURAL_NOTES)


def ordinal(n: int) -> str:
    """English ordinal for a positive integer (1 -> '1st', 11 -> '11th')."""
    suffixes = ["th", "st", "nd", "rd"]
    v = n % 100
    if 11 <= v <= 13:
        return f"{n}th"
    return f"{n}{suffixes[v % 10] if v % 10 < 4 else 'th'}"
