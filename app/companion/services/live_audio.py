"""
Purpose: Live voice conversation with a persona over a provider streaming
session. Best-effort real time: no retries, no delivery guarantees.

Pipeline (each arrow an asyncio.Queue, each box its own task):

    AudioSource -> [capture] -> outbound -> [send] -> StreamingSession
    StreamingSession -> [receive] -> inbound -> [playback] -> AudioSink

Capture resamples device frames to 16 kHz mono and encodes them as base64
16-bit PCM. Playback decodes 24 kHz PCM and schedules each buffer at the
watermark kept by PlaybackScheduler, which only the playback task touches.

Failures: a microphone that cannot be opened raises PermissionDeniedError
before any connection is made. Anything going wrong once streaming is logged
and the session is torn down (capture closed, sink closed).
"""

from __future__ import annotations
import asyncio
import logging
import threading
from typing import Callable, Optional

from ..errors import PermissionDeniedError
from ..interfaces import AudioSink, AudioSource, ModelProvider, StreamingSession
from ..models import GenerationSettings
from ..utils.pcm import decode_pcm16, duration_seconds, encode_pcm16, resample

logger = logging.getLogger(__name__)

INPUT_RATE = 16000
OUTPUT_RATE = 24000
PERMISSION_MESSAGE = "Could not access microphone. Please check permissions."


class PlaybackScheduler:
    """
    Gapless playback watermark. Each buffer starts where the previous one
    ends, but never earlier than the playback clock's current time.
    """

    def __init__(self, clock: Callable[[], float]) -> None:
        self._clock = clock
        self.next_start_time = 0.0

    def schedule(self, duration: float) -> float:
        start = max(self.next_start_time, self._clock())
        self.next_start_time = start + max(0.0, duration)
        return start


class LiveAudioBridge:
    def __init__(
        self,
        provider: ModelProvider,
        source: AudioSource,
        sink: AudioSink,
        *,
        settings: GenerationSettings,
        instruction: Optional[str] = None,
        input_rate: int = INPUT_RATE,
        output_rate: int = OUTPUT_RATE,
        queue_size: int = 64,
    ) -> None:
        self.provider = provider
        self.source = source
        self.sink = sink
        self.settings = settings
        self.instruction = instruction
        self.input_rate = input_rate
        self.output_rate = output_rate
        self.queue_size = queue_size
        self.scheduler = PlaybackScheduler(sink.current_time)
        self.error: Optional[BaseException] = None

    async def run(self, stop: Optional[asyncio.Event] = None) -> None:
        await self.open()
        await self.stream(stop or asyncio.Event())

    async def open(self) -> None:
        """Acquire microphone and speaker; aborts session start when refused."""
        try:
            await self.source.open()
            self.sink.open()
        except PermissionDeniedError:
            await self._teardown()
            raise
        except OSError as exc:
            logger.warning("live_microphone_unavailable", extra={"err": str(exc)})
            await self._teardown()
            raise PermissionDeniedError(PERMISSION_MESSAGE) from exc

    async def stream(self, stop: asyncio.Event) -> None:
        """Connect and pump audio until stop is set or the server closes."""
        try:
            async with self.provider.open_streaming_session(
                self.instruction, self.settings
            ) as session:
                await self._pump(session, stop)
        except Exception as exc:  # contained: live audio never takes the app down
            self.error = exc
            logger.exception("live_session_error")
        finally:
            await self._teardown()

    async def _pump(self, session: StreamingSession, stop: asyncio.Event) -> None:
        outbound: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        inbound: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        playback = asyncio.create_task(self._playback(inbound), name="live-playback")
        stopper = asyncio.create_task(stop.wait(), name="live-stop")
        tasks = {
            asyncio.create_task(self._capture(outbound), name="live-capture"),
            asyncio.create_task(self._send(session, outbound), name="live-send"),
            asyncio.create_task(self._receive(session, inbound), name="live-receive"),
            playback,
            stopper,
        }
        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(
                    pending, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    exc = task.exception()
                    if exc is not None:
                        raise exc
                    # capture/send ending on their own keeps playback going
                    if task is stopper or task is playback:
                        return
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _capture(self, outbound: asyncio.Queue) -> None:
        async for frame in self.source.frames():
            samples = resample(frame, self.source.sample_rate, self.input_rate)
            if samples.size:
                await outbound.put(encode_pcm16(samples, self.input_rate))
        await outbound.put(None)

    async def _send(self, session: StreamingSession, outbound: asyncio.Queue) -> None:
        while True:
            chunk = await outbound.get()
            if chunk is None:
                return
            await session.send_audio(chunk)

    async def _receive(self, session: StreamingSession, inbound: asyncio.Queue) -> None:
        async for data in session.receive():
            await inbound.put(data)
        logger.info("live_session_closed_by_server")
        await inbound.put(None)

    async def _playback(self, inbound: asyncio.Queue) -> None:
        while True:
            data = await inbound.get()
            if data is None:
                return
            samples = decode_pcm16(data)
            if not samples.size:
                continue
            if self.sink.sample_rate != self.output_rate:
                samples = resample(samples, self.output_rate, self.sink.sample_rate)
            start = self.scheduler.schedule(
                duration_seconds(samples, self.sink.sample_rate)
            )
            self.sink.play(samples, start)

    async def _teardown(self) -> None:
        try:
            await self.source.close()
        except Exception:
            logger.warning("live_source_close_failed", exc_info=True)
        try:
            self.sink.close()
        except Exception:
            logger.warning("live_sink_close_failed", exc_info=True)


class LiveTalkRunner:
    """
    Runs a LiveAudioBridge on a private event loop thread so a synchronous
    UI (Streamlit) can start and stop it. start() raises
    PermissionDeniedError when the microphone is refused.
    """

    def __init__(self, bridge_factory: Callable[[], LiveAudioBridge]) -> None:
        self._factory = bridge_factory
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._stop: Optional[asyncio.Event] = None
        self._future = None
        self.bridge: Optional[LiveAudioBridge] = None

    @property
    def is_running(self) -> bool:
        return self._future is not None and not self._future.done()

    def start(self, *, timeout: float = 10.0) -> None:
        if self.is_running:
            return
        if self._loop is not None:
            # previous session ended on its own
            self._shutdown_loop()
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=_run_loop, args=(self._loop,), name="live-audio", daemon=True
        )
        self._thread.start()
        self.bridge = self._factory()
        try:
            asyncio.run_coroutine_threadsafe(self.bridge.open(), self._loop).result(
                timeout
            )
        except BaseException:
            self._shutdown_loop()
            raise
        self._stop = asyncio.Event()
        loop = self._loop
        self._future = asyncio.run_coroutine_threadsafe(
            self.bridge.stream(self._stop), loop
        )
        # server close or transport error: let the loop thread exit
        self._future.add_done_callback(lambda _f: _post(loop, loop.stop))

    def stop(self, *, timeout: float = 5.0) -> None:
        if self._loop is None:
            return
        if self._stop is not None and self.is_running:
            _post(self._loop, self._stop.set)
        if self._future is not None:
            try:
                self._future.result(timeout)
            except Exception:
                logger.warning("live_talk_stop_incomplete", exc_info=True)
        self._shutdown_loop()

    def _shutdown_loop(self) -> None:
        loop, thread = self._loop, self._thread
        self._loop = self._thread = None
        self._future = self._stop = None
        if loop is None:
            return
        _post(loop, loop.stop)
        if thread is not None:
            thread.join(timeout=5.0)


def _run_loop(loop: asyncio.AbstractEventLoop) -> None:
    asyncio.set_event_loop(loop)
    try:
        loop.run_forever()
    finally:
        loop.close()


def _post(loop: asyncio.AbstractEventLoop, callback: Callable[[], object]) -> None:
    if loop.is_closed():
        return
    try:
        loop.call_soon_threadsafe(callback)
    except RuntimeError:
        # closed between the check and the call
        logger.debug("live_loop_already_closed")
