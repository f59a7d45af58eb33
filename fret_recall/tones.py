"""Reference tones and feedback clicks as float32 sample arrays."""

import numpy as np
import soundfile as sf

from .logger import get_logger
from .note_theory import frequency_to_midi

logger = get_logger(__name__)

TONE_AMPLITUDE = 0.25
CLICK_AMPLITUDE = 0.24


def generate_tone(
    frequency: float, duration: float = 0.8, sample_rate: int = 44100
) -> np.ndarray:
    """Synthesize a reference tone.

    Bass notes (octaves 1 and 2) use a triangle wave so their harmonics make
    them audible on small speakers; everything else is a pure sine.
    """
    if frequency <= 0:
        raise ValueError(f"Frequency must be positive, got {frequency}")
    length = int(sample_rate * duration)
    t = np.arange(length) / sample_rate

    octave = int(frequency_to_midi(frequency) // 12) - 1
    if octave in (1, 2):
        phase = (t * frequency) % 1.0
        wave = 4.0 * np.abs(phase - 0.5) - 1.0
    else:
        wave = np.sin(2 * np.pi * frequency * t)
    return (wave * TONE_AMPLITUDE).astype(np.float32)


def generate_click(duration: float = 0.05, sample_rate: int = 44100) -> np.ndarray:
    """A short percussive click for answer feedback."""
    length = int(sample_rate * duration)
    i = np.arange(length)
    t = i / sample_rate

    mix = (
        0.6 * np.sin(2 * np.pi * 2000 * t)
        + 0.4 * np.sin(2 * np.pi * 800 * t)
        + 0.2 * np.sin(2 * np.pi * 200 * t)
    )
    decay = np.exp(-i / (length * 0.05))
    attack_len = length * 0.02
    attack = np.where(i < attack_len, i / attack_len, 1.0)
    return (mix * decay * attack * CLICK_AMPLITUDE).astype(np.float32)


def write_wav(path: str, samples: np.ndarray, sample_rate: int = 44100) -> None:
    """Write mono samples in [-1, 1] as a 16-bit WAV file."""
    sf.write(path, np.asarray(samples, dtype=np.float32), sample_rate, subtype="PCM_16")
    logger.debug(f"Wrote {len(samples)} samples to {path}")
