"""Fret Recall - fretboard and ear training engine."""

__version__ = "0.1.0"
