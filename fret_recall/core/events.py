"""Publish/subscribe helpers used by the detection service."""

from typing import Dict, List, Callable, Any
from enum import Enum, auto

from ..logger import get_logger

logger = get_logger(__name__)


class DetectionEventType(Enum):
    """What a detection service listener can subscribe to."""

    RESULT = auto()  # Every per-frame DetectionResult
    NOTE_DETECTED = auto()  # Stable Detected results only
    LEVEL = auto()  # Smoothed input level, 0-1
    ERROR = auto()


class EventEmitter:
    """Keeps callbacks per event key and calls them in registration order.

    A callback is registered at most once per key.
    """

    def __init__(self):
        self._listeners: Dict[Any, List[Callable]] = {}

    def on(self, event_type: Any, callback: Callable) -> None:
        """Subscribe ``callback`` to ``event_type``."""
        callbacks = self._listeners.setdefault(event_type, [])
        if callback in callbacks:
            return
        callbacks.append(callback)
        logger.debug(f"Subscribed {getattr(callback, '__name__', callback)} to {event_type}")

    def off(self, event_type: Any, callback: Callable) -> None:
        """Unsubscribe ``callback``; unknown callbacks are ignored."""
        callbacks = self._listeners.get(event_type)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event_type: Any, *args, **kwargs) -> None:
        """Call every subscriber of ``event_type`` with the given arguments.

        Subscribers run on the caller's thread. One that raises is logged and
        skipped; the rest still run.
        """
        for callback in tuple(self._listeners.get(event_type, ())):
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Listener for {event_type} failed: {e}")

    def clear(self) -> None:
        """Drop every subscription."""
        self._listeners.clear()
        logger.debug("Cleared all event listeners")
