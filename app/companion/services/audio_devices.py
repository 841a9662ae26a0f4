"""
Purpose: Local microphone/speaker adapters for the live-audio bridge,
backed by sounddevice (PortAudio).

Note: sounddevice opens the devices of the machine running the process, so
live talk works when the app runs locally, not in a hosted deployment.
sounddevice is imported when a device is opened; a missing PortAudio
library surfaces as the same permission error as a refused microphone.
"""

from __future__ import annotations
import asyncio
import logging
import threading
from typing import Optional

import numpy as np

from ..errors import PermissionDeniedError
from .live_audio import INPUT_RATE, OUTPUT_RATE, PERMISSION_MESSAGE

logger = logging.getLogger(__name__)


class MicrophoneSource:
    def __init__(
        self,
        *,
        sample_rate: int = INPUT_RATE,
        block_size: int = 4096,
        device=None,
        max_pending: int = 64,
    ) -> None:
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.device = device
        self._max_pending = max_pending
        self._stream = None
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def open(self) -> None:
        import sounddevice as sd

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self._max_pending)
        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                blocksize=self.block_size,
                channels=1,
                dtype="float32",
                device=self.device,
                callback=self._on_audio,
            )
            self._stream.start()
        except sd.PortAudioError as exc:
            self._stream = None
            raise PermissionDeniedError(PERMISSION_MESSAGE) from exc

    def _on_audio(self, indata, frames, time_info, status) -> None:
        # PortAudio thread
        if status:
            logger.debug("microphone_status", extra={"status": str(status)})
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._offer, indata[:, 0].copy())

    def _offer(self, frame: Optional[np.ndarray]) -> None:
        if self._queue is None:
            return
        if self._queue.full():
            logger.debug("microphone_frame_dropped")
            return
        self._queue.put_nowait(frame)

    async def frames(self):
        while self._queue is not None:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame

    async def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()
        if self._queue is not None:
            while not self._queue.empty():
                self._queue.get_nowait()
            self._queue.put_nowait(None)


class SpeakerSink:
    """
    Output device with its own sample clock. current_time() counts samples
    handed to the device, so it behaves like an audio context clock:
    monotonic, starting at 0 when the stream opens, advancing in silence too.
    """

    def __init__(self, *, sample_rate: int = OUTPUT_RATE, device=None) -> None:
        self.sample_rate = sample_rate
        self.device = device
        self._lock = threading.Lock()
        self._pending = np.zeros(0, dtype=np.float32)
        self._played = 0
        self._stream = None

    def open(self) -> None:
        import sounddevice as sd

        try:
            self._stream = sd.OutputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                device=self.device,
                callback=self._on_output,
            )
            self._stream.start()
        except sd.PortAudioError as exc:
            self._stream = None
            raise PermissionDeniedError(
                "Could not open the audio output device."
            ) from exc

    def current_time(self) -> float:
        with self._lock:
            return self._played / float(self.sample_rate)

    def play(self, samples: np.ndarray, start_at: float) -> None:
        samples = np.asarray(samples, dtype=np.float32).reshape(-1)
        with self._lock:
            offset = int(round(start_at * self.sample_rate)) - self._played
            if offset < 0:
                samples = samples[-offset:]
                offset = 0
            end = offset + samples.size
            if end > self._pending.size:
                grown = np.zeros(end, dtype=np.float32)
                grown[: self._pending.size] = self._pending
                self._pending = grown
            self._pending[offset:end] = samples

    def _on_output(self, outdata, frames, time_info, status) -> None:
        # PortAudio thread
        with self._lock:
            n = min(frames, self._pending.size)
            outdata[:n, 0] = self._pending[:n]
            outdata[n:, 0] = 0.0
            self._pending = self._pending[frames:]
            self._played += frames

    def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()
        with self._lock:
            self._pending = np.zeros(0, dtype=np.float32)
