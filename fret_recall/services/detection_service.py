import queue
import time
from typing import Callable, List, Optional, Tuple

import numpy as np

from ..core.events import DetectionEventType, EventEmitter
from ..core.interfaces import IAudioProvider
from ..detection.level_meter import LevelMeter
from ..detection.pitch_detector import PitchDetector
from ..logger import get_logger
from ..note_types import Detected, DetectionResult

logger = get_logger(__name__)


class DetectionChannel:
    """Bounded single-producer/single-consumer hand-off for detection results.

    The consumer opens the channel for a card; every published result is
    stamped with a card id (by default the one open at that moment) so results
    that arrive after the card is gone can be recognised and dropped. When full, the oldest
    result is discarded so the audio side never blocks.
    """

    def __init__(self, capacity: int = 8):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._queue: "queue.Queue[Tuple[int, DetectionResult]]" = queue.Queue(maxsize=capacity)
        self._card_id: Optional[int] = None
        self.dropped = 0

    @property
    def card_id(self) -> Optional[int]:
        return self._card_id

    def open(self, card_id: int) -> None:
        self._card_id = card_id

    def close(self) -> None:
        self._card_id = None

    def publish(self, result: DetectionResult, card_id: Optional[int] = None) -> bool:
        """Queue a result for a card; returns False if it was dropped.

        Without ``card_id`` the result goes to the card open right now.
        """
        if card_id is None:
            card_id = self._card_id
        if card_id is None:
            return False
        item = (card_id, result)
        try:
            self._queue.put_nowait(item)
            return True
        except queue.Full:
            pass
        try:
            self._queue.get_nowait()
            self.dropped += 1
        except queue.Empty:
            pass
        try:
            self._queue.put_nowait(item)
            return True
        except queue.Full:
            self.dropped += 1
            return False

    def drain(self) -> List[Tuple[int, DetectionResult]]:
        """Take every queued result without blocking."""
        items = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                return items


class DetectionService:
    """Feeds audio frames through a PitchDetector and hands results off.

    Runs on whatever thread the audio provider calls back on. Stable results
    go to the DetectionChannel; every result and the input level are also
    emitted to listeners for display or announcement.
    """

    def __init__(
        self,
        audio_provider: IAudioProvider,
        detector: Optional[PitchDetector] = None,
        channel: Optional[DetectionChannel] = None,
        resubmit_delay: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        **detector_config,
    ) -> None:
        self._audio_provider = audio_provider
        self._detector = detector or PitchDetector(
            sample_rate=audio_provider.sample_rate, **detector_config
        )
        self.channel = channel or DetectionChannel()
        self.events = EventEmitter()
        self._level_meter = LevelMeter(
            self._detector.sample_rate, self._detector.frame_size
        )
        self._resubmit_delay = resubmit_delay
        self._clock = clock
        self._last_published: Optional[int] = None
        self._last_published_at = 0.0
        self._listening_for: Optional[int] = None
        self._running = False

    @property
    def detector(self) -> PitchDetector:
        return self._detector

    @property
    def level(self) -> float:
        return self._level_meter.level

    def is_running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """Start the audio provider.

        Returns:
            True if audio is flowing, False if the device could not be opened
            (the quiz keeps working with positional answers)
        """
        if self._running:
            return True
        self._level_meter.reset()
        self._forget_card(self.channel.card_id)
        try:
            self._running = True
            self._audio_provider.start(self.process_frame)
        except Exception as e:
            self._running = False
            logger.error(f"Failed to start audio input: {e}")
            self.events.emit(DetectionEventType.ERROR, e)
            return False
        return True

    def stop(self) -> None:
        """Stops the audio provider."""
        self._running = False
        self._audio_provider.stop()

    def process_frame(self, frame: np.ndarray) -> DetectionResult:
        """Handle one frame from the provider.

        The frame belongs to the card open when it arrives. A new card restarts
        the stability window, so a result never mixes frames from two cards.
        """
        card_id = self.channel.card_id
        if card_id != self._listening_for:
            self._forget_card(card_id)

        level = self._level_meter.update(frame)
        result = self._detector.process(frame)
        self.events.emit(DetectionEventType.LEVEL, level)
        self.events.emit(DetectionEventType.RESULT, result)
        if isinstance(result, Detected) and self._should_publish(result):
            self.events.emit(DetectionEventType.NOTE_DETECTED, result)
            if card_id is not None:
                self.channel.publish(result, card_id)
        return result

    def _forget_card(self, card_id: Optional[int]) -> None:
        self._detector.reset()
        self._last_published = None
        self._last_published_at = 0.0
        self._listening_for = card_id

    def _should_publish(self, result: Detected) -> bool:
        now = self._clock()
        if (
            result.pitch_index != self._last_published
            or now - self._last_published_at > self._resubmit_delay
        ):
            self._last_published = result.pitch_index
            self._last_published_at = now
            return True
        return False
