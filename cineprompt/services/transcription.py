from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack

from google.genai import types

from cineprompt.core.exceptions import TranscriptionSessionError
from cineprompt.services.audio_capture import AudioChunk
from cineprompt.services.vertex_gemini import GeminiClient

logger = logging.getLogger(__name__)

TRANSCRIBER_INSTRUCTION = (
    "You are a transcriber. Convert the incoming audio into clear text, verbatim, "
    "with 100% precision. Do not answer, summarize or add anything."
)


def build_live_config() -> types.LiveConnectConfig:
    return types.LiveConnectConfig(
        response_modalities=[types.Modality.AUDIO],
        input_audio_transcription=types.AudioTranscriptionConfig(),
        system_instruction=TRANSCRIBER_INSTRUCTION,
    )


class LiveTranscriptionConnection:
    """An open Gemini Live session used as audio-in, transcript-out."""

    def __init__(self, session, exit_stack: AsyncExitStack) -> None:
        self._session = session
        self._exit_stack = exit_stack
        self._closed = False

    async def send(self, chunk: AudioChunk) -> None:
        await self._session.send_realtime_input(
            audio=types.Blob(data=chunk.pcm, mime_type=chunk.mime_type),
        )

    async def receive(self) -> AsyncIterator[str]:
        """Yield input-transcription fragments until the server ends the session.

        `session.receive()` stops after each model turn, so it is re-entered
        until a pass yields nothing at all.
        """
        while not self._closed:
            received_any = False
            async for message in self._session.receive():
                received_any = True
                server_content = message.server_content
                if server_content is None or server_content.input_transcription is None:
                    continue
                text = server_content.input_transcription.text
                if text:
                    yield text
            if not received_any:
                return

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._exit_stack.aclose()


class GeminiLiveTranscriber:
    def __init__(self, client: GeminiClient, *, config: types.LiveConnectConfig | None = None) -> None:
        self._client = client
        self._config = config or build_live_config()

    async def open(self) -> LiveTranscriptionConnection:
        exit_stack = AsyncExitStack()
        try:
            session = await exit_stack.enter_async_context(self._client.connect_live(self._config))
        except Exception as exc:  # noqa: BLE001
            await exit_stack.aclose()
            raise TranscriptionSessionError(
                f"Could not open transcription session: {exc!r}",
                detail="Transcription unavailable",
            ) from exc
        logger.info("transcription.session_opened")
        return LiveTranscriptionConnection(session, exit_stack)
