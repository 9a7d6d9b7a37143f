"""Microphone-to-transcript session.

The session owns three handles while OPEN: the device stream, the audio frame
graph and the streaming connection. Everything the backend reports (open,
transcript fragments, errors, close) travels through one event queue drained
by a single dispatcher task, so state transitions happen in arrival order and
can be driven in tests with fakes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import numpy as np

from cineprompt.core.metrics import record_audio_frame_sent, record_transcript_fragment
from cineprompt.core.settings import settings
from cineprompt.services.audio_capture import PCM_SAMPLE_RATE, AudioChunk, AudioFrameGraph, encode_pcm_frame

logger = logging.getLogger(__name__)


class AudioStream(Protocol):
    def add_sink(self, sink: Callable[[np.ndarray], None]) -> None: ...

    def remove_sink(self, sink: Callable[[np.ndarray], None]) -> None: ...

    def stop_all_tracks(self) -> None: ...


class AudioDevice(Protocol):
    async def acquire_stream(self) -> AudioStream: ...


class AudioGraph(Protocol):
    def start(self) -> None: ...

    def close(self) -> None: ...

    def frames(self) -> AsyncIterator[np.ndarray]: ...


class TranscriptionConnection(Protocol):
    async def send(self, chunk: AudioChunk) -> None: ...

    def receive(self) -> AsyncIterator[str]: ...

    async def close(self) -> None: ...


class TranscriptionBackend(Protocol):
    async def open(self) -> TranscriptionConnection: ...


GraphFactory = Callable[[AudioStream, int, int], AudioGraph]


class SessionState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"


@dataclass(frozen=True)
class SessionOpened:
    pass


@dataclass(frozen=True)
class TranscriptFragment:
    text: str


@dataclass(frozen=True)
class SessionFailed:
    error: BaseException


@dataclass(frozen=True)
class SessionEnded:
    pass


SessionEvent = SessionOpened | TranscriptFragment | SessionFailed | SessionEnded


class AudioTranscriptionSession:
    def __init__(
        self,
        device: AudioDevice,
        backend: TranscriptionBackend,
        on_transcript: Callable[[str], None],
        *,
        graph_factory: GraphFactory = AudioFrameGraph,
        frame_size: int | None = None,
    ) -> None:
        self._device = device
        self._backend = backend
        self._on_transcript = on_transcript
        self._graph_factory = graph_factory
        self._frame_size = frame_size or settings.audio_frame_size

        self._state = SessionState.CLOSED
        self._starting = False
        self._stop_requested = False

        self._stream: AudioStream | None = None
        self._graph: AudioGraph | None = None
        self._connection: TranscriptionConnection | None = None

        self._events: asyncio.Queue[SessionEvent] | None = None
        self._dispatcher: asyncio.Task | None = None
        self._receiver: asyncio.Task | None = None
        self._pump: asyncio.Task | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is SessionState.OPEN

    async def start(self) -> bool:
        """Acquire the microphone and open the streaming session.

        Returns True once OPEN. Any acquisition failure is logged, whatever
        was already acquired is released, and False is returned.
        """
        if self._state is SessionState.OPEN or self._starting:
            return False

        self._starting = True
        self._stop_requested = False
        try:
            self._stream = await self._device.acquire_stream()
            self._graph = self._graph_factory(self._stream, PCM_SAMPLE_RATE, self._frame_size)
            self._connection = await self._backend.open()
        except Exception as exc:  # noqa: BLE001
            logger.warning("transcription.start_failed error=%r", exc)
            await self._release_handles()
            return False
        except BaseException:
            # cancelled mid-acquisition
            await self._release_handles()
            raise
        finally:
            self._starting = False

        if self._stop_requested:
            logger.info("transcription.start_cancelled")
            await self._release_handles()
            return False

        self._state = SessionState.OPEN
        loop = asyncio.get_running_loop()
        self._events = asyncio.Queue()
        self._dispatcher = loop.create_task(self._dispatch(self._events), name="transcription-dispatch")
        self._receiver = loop.create_task(
            self._receive(self._connection, self._events),
            name="transcription-receive",
        )
        self._events.put_nowait(SessionOpened())
        logger.info("transcription.started")
        return True

    async def stop(self) -> None:
        if self._starting:
            self._stop_requested = True
            return
        if self._state is SessionState.CLOSED:
            return
        await self._shutdown()
        logger.info("transcription.stopped")

    async def _dispatch(self, events: asyncio.Queue[SessionEvent]) -> None:
        while True:
            event = await events.get()
            if isinstance(event, SessionOpened):
                self._start_pump()
            elif isinstance(event, TranscriptFragment):
                record_transcript_fragment()
                self._on_transcript(event.text)
            elif isinstance(event, SessionFailed):
                logger.error("transcription.session_error error=%r", event.error)
                await self._shutdown()
                return
            elif isinstance(event, SessionEnded):
                logger.info("transcription.session_closed")
                await self._shutdown()
                return

    def _start_pump(self) -> None:
        graph, connection, events = self._graph, self._connection, self._events
        if graph is None or connection is None or events is None:
            return
        graph.start()
        self._pump = asyncio.get_running_loop().create_task(
            self._pump_frames(graph, connection, events),
            name="transcription-pump",
        )

    async def _pump_frames(
        self,
        graph: AudioGraph,
        connection: TranscriptionConnection,
        events: asyncio.Queue[SessionEvent],
    ) -> None:
        try:
            async for frame in graph.frames():
                await connection.send(encode_pcm_frame(frame))
                record_audio_frame_sent()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            events.put_nowait(SessionFailed(exc))

    async def _receive(self, connection: TranscriptionConnection, events: asyncio.Queue[SessionEvent]) -> None:
        try:
            async for text in connection.receive():
                events.put_nowait(TranscriptFragment(text))
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            events.put_nowait(SessionFailed(exc))
            return
        events.put_nowait(SessionEnded())

    async def _shutdown(self) -> None:
        if self._state is SessionState.CLOSED:
            return
        self._state = SessionState.CLOSED

        current = asyncio.current_task()
        tasks = [task for task in (self._pump, self._receiver, self._dispatcher) if task is not None]
        self._pump = self._receiver = self._dispatcher = None
        self._events = None
        for task in tasks:
            if task is not current:
                task.cancel()

        await self._release_handles()

        pending = [task for task in tasks if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _release_handles(self) -> None:
        """Release graph, connection and stream; each step runs even if another fails."""
        graph, connection, stream = self._graph, self._connection, self._stream
        self._graph = self._connection = self._stream = None

        if graph is not None:
            try:
                graph.close()
            except Exception:  # noqa: BLE001
                logger.warning("transcription.graph_close_failed", exc_info=True)
        if connection is not None:
            try:
                await connection.close()
            except Exception:  # noqa: BLE001
                logger.warning("transcription.connection_close_failed", exc_info=True)
        if stream is not None:
            try:
                stream.stop_all_tracks()
            except Exception:  # noqa: BLE001
                logger.warning("transcription.stream_stop_failed", exc_info=True)
