"""Live audio input and playback via sounddevice."""

from typing import Any, Callable, Dict, List, Optional

import numpy as np
import sounddevice as sd

from ..core.interfaces import IAudioProvider
from ..logger import get_logger

logger = get_logger(__name__)


def list_input_devices() -> List[Dict[str, Any]]:
    """Describe every device that can record."""
    devices = []
    for device_id, device in enumerate(sd.query_devices()):
        if device["max_input_channels"] > 0:
            devices.append(
                {
                    "id": device_id,
                    "name": device["name"],
                    "channels": device["max_input_channels"],
                    "default_samplerate": device["default_samplerate"],
                }
            )
    return devices


def play_samples(samples: np.ndarray, sample_rate: int = 44100, device_id: Optional[int] = None) -> None:
    """Play samples on the output device and wait until they finish."""
    sd.play(samples, samplerate=sample_rate, device=device_id)
    sd.wait()


class LiveAudioProvider(IAudioProvider):
    """Provides live audio from an input device using sounddevice."""

    def __init__(
        self,
        device_id: Optional[int] = None,
        sample_rate: int = 44100,
        channels: int = 1,
        chunk_size: int = 2048,
    ):
        self._device_id = device_id
        self._sample_rate = sample_rate
        self._channels = channels
        self._chunk_size = chunk_size
        self._stream: Optional[sd.InputStream] = None
        self._on_data_callback: Optional[Callable[[np.ndarray], None]] = None

    def start(self, on_data_callback: Callable[[np.ndarray], None]) -> None:
        """Open and start the input stream.

        Raises:
            sounddevice.PortAudioError: if the device cannot be opened
        """
        self._on_data_callback = on_data_callback
        self._stream = sd.InputStream(
            device=self._device_id,
            channels=self._channels,
            samplerate=self._sample_rate,
            blocksize=self._chunk_size,
            callback=self._audio_callback,
            dtype="float32",  # Standard for audio processing
        )
        self._stream.start()
        logger.info(
            f"Microphone started: device={self._device_id}, sample_rate={self._sample_rate}"
        )

    def stop(self) -> None:
        if self._stream:
            self._stream.stop()
            self._stream.close()
            self._stream = None

    def _audio_callback(self, indata: np.ndarray, _frames: int, _time_info, status) -> None:
        if status:
            logger.warning(f"Audio input status: {status}")
        if self._on_data_callback:
            # indata is reused by PortAudio after the callback returns
            frame = indata[:, 0] if self._channels == 1 else indata
            self._on_data_callback(frame.copy())

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels
