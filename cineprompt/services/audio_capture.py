"""Microphone capture and PCM framing for live transcription.

`SoundDeviceMicrophone` opens a 16 kHz mono float32 input stream on the
PortAudio callback thread. `AudioFrameGraph` hands each block over to the
event loop through `call_soon_threadsafe`, so every frame is queued and
consumed on the loop in capture order. `encode_pcm_frame` converts a block
to 16-bit linear PCM ready for the streaming session.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import threading
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

import numpy as np

from cineprompt.core.exceptions import AudioCaptureError
from cineprompt.core.settings import settings

logger = logging.getLogger(__name__)

FrameSink = Callable[[np.ndarray], None]

# The transcription backend only accepts 16 kHz mono PCM.
PCM_SAMPLE_RATE = 16000


@dataclass(frozen=True)
class AudioChunk:
    pcm: bytes
    mime_type: str

    @property
    def data(self) -> str:
        """Base64 text of the PCM payload, as carried on the wire."""
        return base64.b64encode(self.pcm).decode("ascii")


def pcm_mime_type(sample_rate: int) -> str:
    return f"audio/pcm;rate={sample_rate}"


def float_to_pcm16(samples: np.ndarray) -> np.ndarray:
    """Scale [-1, 1] floats by 32768 and truncate toward zero into int16.

    Full-scale positive input clamps to 32767 instead of wrapping.
    """
    scaled = np.trunc(np.asarray(samples, dtype=np.float32) * 32768.0)
    return np.clip(scaled, -32768, 32767).astype("<i2")


def _load_sounddevice():
    # PortAudio is a system library; only recording needs it.
    try:
        import sounddevice
    except OSError as exc:
        raise AudioCaptureError(f"PortAudio is not available: {exc}", detail="Microphone unavailable") from exc
    return sounddevice


def encode_pcm_frame(samples: np.ndarray) -> AudioChunk:
    return AudioChunk(pcm=float_to_pcm16(samples).tobytes(), mime_type=pcm_mime_type(PCM_SAMPLE_RATE))


class MicrophoneStream:
    """Device stream handle; fans captured blocks out to attached sinks."""

    def __init__(self, sample_rate: int, frame_size: int, device: str | int | None = None) -> None:
        self._sinks: list[FrameSink] = []
        self._sinks_lock = threading.Lock()
        sd = _load_sounddevice()
        self._stream = sd.InputStream(
            samplerate=sample_rate,
            channels=1,
            dtype="float32",
            blocksize=frame_size,
            device=device,
            callback=self._on_audio,
        )

    def add_sink(self, sink: FrameSink) -> None:
        with self._sinks_lock:
            self._sinks.append(sink)

    def remove_sink(self, sink: FrameSink) -> None:
        with self._sinks_lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def start(self) -> None:
        self._stream.start()

    def stop_all_tracks(self) -> None:
        with self._sinks_lock:
            self._sinks.clear()
        try:
            self._stream.stop()
        finally:
            self._stream.close()

    def _on_audio(self, indata, frames, time_info, status) -> None:
        if status:
            logger.warning("microphone.status status=%s", status)
        mono = indata[:, 0].astype(np.float32, copy=True)
        with self._sinks_lock:
            sinks = list(self._sinks)
        for sink in sinks:
            sink(mono)


class SoundDeviceMicrophone:
    def __init__(
        self,
        *,
        frame_size: int | None = None,
        device: str | None = None,
    ) -> None:
        self._frame_size = frame_size or settings.audio_frame_size
        self._device = device if device is not None else settings.audio_input_device

    async def acquire_stream(self) -> MicrophoneStream:
        sd = _load_sounddevice()
        try:
            return await asyncio.to_thread(
                MicrophoneStream,
                PCM_SAMPLE_RATE,
                self._frame_size,
                self._device,
            )
        except (sd.PortAudioError, ValueError) as exc:
            raise AudioCaptureError(f"Microphone unavailable: {exc}", detail="Microphone unavailable") from exc


class AudioFrameGraph:
    """Processing graph between the device stream and the event loop.

    Once `close` returns, no further frame from the device is queued, even
    one already handed to the loop but not yet delivered.
    """

    def __init__(self, stream, sample_rate: int, frame_size: int) -> None:
        self.sample_rate = sample_rate
        self.frame_size = frame_size
        self._stream = stream
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[np.ndarray | None] = asyncio.Queue()
        self._closed = False
        self._started = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        if self._closed or self._started:
            return
        self._started = True
        self._stream.add_sink(self._from_device)
        start = getattr(self._stream, "start", None)
        if start is not None:
            start()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stream.remove_sink(self._from_device)
        self._queue.put_nowait(None)

    async def frames(self) -> AsyncIterator[np.ndarray]:
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame

    def _from_device(self, frame: np.ndarray) -> None:
        if self._closed:
            return
        try:
            self._loop.call_soon_threadsafe(self._enqueue, frame)
        except RuntimeError:
            # loop already closed during shutdown
            pass

    def _enqueue(self, frame: np.ndarray) -> None:
        if not self._closed:
            self._queue.put_nowait(frame)
