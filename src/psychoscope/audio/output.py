"""
Output backends that drive an :class:`AudioContext`.

- SoundDeviceOutput: real-time PortAudio stream, the callback pulls blocks
- OfflineOutput: pulls on demand, for headless renders and tests
"""

import logging
from typing import Optional, Union

import numpy as np

from psychoscope.audio.context import AudioContext
from psychoscope.errors import AudioInitError

logger = logging.getLogger(__name__)


class AudioOutput:
    """Base backend: binds to a context on ``start`` and releases on ``stop``."""

    def __init__(self):
        self.context: Optional[AudioContext] = None

    @property
    def running(self) -> bool:
        return self.context is not None

    def start(self, context: AudioContext):
        self.context = context

    def stop(self):
        self.context = None


class SoundDeviceOutput(AudioOutput):
    """Mono ``sounddevice.OutputStream`` whose callback renders the context."""

    def __init__(self, blocksize: int = 512, latency: Union[str, float] = "low", device=None):
        super().__init__()
        self.blocksize = blocksize
        self.latency = latency
        self.device = device
        self._stream = None

    def _callback(self, outdata, frames, time_info, status):
        if status:
            logger.debug("Audio callback status: %s", status)
        outdata[:, 0] = self.context.render(frames)

    def start(self, context: AudioContext):
        """
        Open and start the output stream.

        Raises:
            AudioInitError: sounddevice/PortAudio is unavailable or the device
                refused the stream.
        """
        try:
            import sounddevice as sd
        except (ImportError, OSError) as e:
            raise AudioInitError(f"sounddevice unavailable: {e}") from e

        self.context = context
        try:
            stream = sd.OutputStream(
                samplerate=context.sample_rate,
                blocksize=self.blocksize,
                channels=1,
                dtype="float32",
                latency=self.latency,
                device=self.device,
                callback=self._callback,
            )
            stream.start()
        except (sd.PortAudioError, OSError, ValueError) as e:
            self.context = None
            raise AudioInitError(f"Could not open audio output: {e}") from e

        self._stream = stream
        logger.info(
            "Audio output started: %d Hz, blocksize %d, latency %s",
            context.sample_rate, self.blocksize, self.latency,
        )

    def stop(self):
        if self._stream is not None:
            try:
                self._stream.stop()
            finally:
                self._stream.close()
                self._stream = None
            logger.info("Audio output stopped")
        super().stop()


class OfflineOutput(AudioOutput):
    """Renders the context only when asked."""

    def __init__(self, blocksize: int = 512):
        super().__init__()
        self.blocksize = blocksize

    def pull(self, frames: int) -> np.ndarray:
        """Render ``frames`` samples in blocks of at most ``blocksize``."""
        if self.context is None:
            raise RuntimeError("OfflineOutput is not started")
        blocks = []
        remaining = frames
        while remaining > 0:
            n = min(self.blocksize, remaining)
            blocks.append(self.context.render(n))
            remaining -= n
        if not blocks:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(blocks)

    def record(self, seconds: float) -> np.ndarray:
        if self.context is None:
            raise RuntimeError("OfflineOutput is not started")
        return self.pull(int(round(seconds * self.context.sample_rate)))
