"""Exception types for Fret Recall."""


class FretRecallError(Exception):
    """Base class for Fret Recall errors."""


class InvalidNoteError(FretRecallError, ValueError):
    """Raised when a string is not one of the canonical note spellings."""


class ConfigurationError(FretRecallError, ValueError):
    """Raised when settings or a tuning cannot produce a playable session."""
