import threading
import time
from typing import Callable, Iterator, Optional

import numpy as np
import soundfile as sf

from ..core.interfaces import IAudioProvider
from ..logger import get_logger

logger = get_logger(__name__)


class WavFileAudioProvider(IAudioProvider):
    """Provides audio data by reading from a WAV file."""

    def __init__(
        self,
        file_path: str,
        chunk_size: int = 2048,
        loop: bool = False,
        gain: float = 1.0,
        realtime: bool = True,
    ):
        self._file_path = file_path
        self._chunk_size = chunk_size
        self._loop = loop
        self._gain = gain
        self._realtime = realtime
        self._on_data_callback: Optional[Callable[[np.ndarray], None]] = None
        self._is_running = False
        self._thread: Optional[threading.Thread] = None

        with sf.SoundFile(self._file_path) as f:
            self._sample_rate = f.samplerate
            self._channels = f.channels

    def start(self, on_data_callback: Callable[[np.ndarray], None]) -> None:
        if self._is_running:
            return

        self._on_data_callback = on_data_callback
        self._is_running = True
        self._thread = threading.Thread(target=self._stream_data, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._is_running = False
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join()
        self._thread = None

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until a non-looping file has been fully streamed."""
        if self._thread:
            self._thread.join(timeout)

    @property
    def is_running(self) -> bool:
        """Returns True if the provider is currently streaming data."""
        return self._is_running

    def iter_frames(self) -> Iterator[np.ndarray]:
        """Yield mono float32 frames of ``chunk_size`` samples, synchronously."""
        with sf.SoundFile(self._file_path) as f:
            while True:
                data = f.read(self._chunk_size, dtype="float32", always_2d=True)
                if len(data) == 0:
                    if self._loop:
                        f.seek(0)
                        continue
                    return
                if len(data) < self._chunk_size:
                    padding = np.zeros(
                        (self._chunk_size - len(data), data.shape[1]), dtype=np.float32
                    )
                    data = np.concatenate((data, padding))
                if self._gain != 1.0:
                    data *= self._gain
                yield data.mean(axis=1) if data.shape[1] > 1 else data[:, 0]

    def _stream_data(self) -> None:
        try:
            for frame in self.iter_frames():
                if not self._is_running:
                    break
                if self._on_data_callback:
                    self._on_data_callback(frame)
                if self._realtime:
                    # Simulate real-time playback speed
                    time.sleep(self._chunk_size / self.sample_rate)
        except (RuntimeError, OSError) as e:
            logger.error(f"Error streaming WAV file {self._file_path}: {e}")
        finally:
            self._is_running = False  # Ensure flag is reset on exit

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels


class ArrayAudioProvider(IAudioProvider):
    """Provides audio from samples already in memory, synchronously."""

    def __init__(self, samples: np.ndarray, sample_rate: int, chunk_size: int = 2048):
        self._samples = np.asarray(samples, dtype=np.float32)
        self._sample_rate = sample_rate
        self._chunk_size = chunk_size
        self._is_running = False

    def iter_frames(self) -> Iterator[np.ndarray]:
        for start in range(0, len(self._samples), self._chunk_size):
            frame = self._samples[start : start + self._chunk_size]
            if len(frame) < self._chunk_size:
                frame = np.concatenate(
                    (frame, np.zeros(self._chunk_size - len(frame), dtype=np.float32))
                )
            yield frame

    def start(self, on_data_callback: Callable[[np.ndarray], None]) -> None:
        self._is_running = True
        try:
            for frame in self.iter_frames():
                if not self._is_running:
                    break
                on_data_callback(frame)
        finally:
            self._is_running = False

    def stop(self) -> None:
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return 1
