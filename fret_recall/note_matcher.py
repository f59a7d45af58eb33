import re
from typing import Optional, Tuple

from .logger import get_logger
from .note_theory import NOTE_VARIANTS, midi

# Get logger for this module
logger = get_logger(__name__)

# Compile regex to extract note name and octave
# This pattern matches:
# - Note name (A-G)
# - Optional accidental (#, b, or the Unicode sharp/flat signs)
# - Optional octave number, possibly negative
NOTE_PATTERN = re.compile(r"^([A-G][#b♯♭]?)(-?[0-9]*)$")


def parse_note(text: str) -> Optional[Tuple[str, Optional[int]]]:
    """Split a scientific-pitch string into ``(note_name, octave)``.

    Args:
        text: A note such as 'E2', 'C#4', 'Gb' or 'B♭3'

    Returns:
        The canonical note name and octave (None when the string has no
        octave), or None if the string is not a valid note
    """
    if not isinstance(text, str):
        return None
    match = NOTE_PATTERN.match(text.strip())
    if not match:
        return None
    name = match.group(1).replace("♯", "#").replace("♭", "b")
    if name not in NOTE_VARIANTS:
        return None
    octave_text = match.group(2)
    if octave_text in ("", "-"):
        return name, None
    return name, int(octave_text)


class NoteMatcher:
    """
    Encapsulates logic for comparing played notes to target notes,
    using pitch-class (enharmonic) equivalence.
    """

    @classmethod
    def match(cls, target: str, played: str, match_octave: bool = False) -> bool:
        """
        Check if the played note matches the target note.

        Args:
            target: The target note (e.g., 'A', 'A#', 'Bb', 'E2')
            played: The played note (e.g., 'A4', 'A#3', 'Bb2')
            match_octave: Also require the same absolute pitch; both notes
                must then carry an octave
        Returns:
            bool: True if the notes match, False otherwise
        """
        target_parsed = parse_note(target)
        played_parsed = parse_note(played)

        if target_parsed is None or played_parsed is None:
            logger.debug(f"Invalid note format - target: {target!r}, played: {played!r}")
            return False

        target_name, target_octave = target_parsed
        played_name, played_octave = played_parsed

        if NOTE_VARIANTS[target_name] != NOTE_VARIANTS[played_name]:
            logger.debug(f"No match: '{played}' != '{target}'")
            return False

        if not match_octave:
            logger.debug(f"Pitch class match: '{played}' ~ '{target}'")
            return True

        if target_octave is None or played_octave is None:
            return False
        target_midi = midi(target_name, target_octave)
        return target_midi is not None and target_midi == midi(played_name, played_octave)
