from __future__ import annotations

import logging
from dataclasses import dataclass

from cineprompt.core.gemini_factory import build_gemini_client
from cineprompt.core.settings import settings
from cineprompt.engine.audio_session import AudioDevice, AudioTranscriptionSession, GraphFactory, TranscriptionBackend
from cineprompt.engine.catalog import ShotType
from cineprompt.engine.invokers import EnhancementInvoker, EnhancementOutcome, Enhancer, TranslationInvoker
from cineprompt.engine.synchronizer import DraftSynchronizer, Translator
from cineprompt.services.audio_capture import AudioFrameGraph, SoundDeviceMicrophone
from cineprompt.services.enhancement import EnhancementService, ReferenceImage
from cineprompt.services.transcription import GeminiLiveTranscriber
from cineprompt.services.translation import TranslationService
from cineprompt.services.vertex_gemini import GeminiClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkspaceSnapshot:
    shot_type: ShotType
    movement_ids: tuple[str, ...]
    raw_content: str
    translated_draft: str
    assembled_prompt: str
    is_ai_generated: bool
    needs_translation: bool
    translation_pending: bool
    is_translating: bool
    is_enhancing: bool
    is_recording: bool
    has_reference_image: bool
    can_enhance: bool


class PromptWorkspace:
    """One user's prompt under construction, with every input wired in."""

    def __init__(
        self,
        translator: Translator,
        enhancer: Enhancer,
        device: AudioDevice,
        transcription_backend: TranscriptionBackend,
        *,
        debounce_seconds: float | None = None,
        graph_factory: GraphFactory = AudioFrameGraph,
        gemini_client: GeminiClient | None = None,
    ) -> None:
        self.gemini_client = gemini_client
        self.synchronizer = DraftSynchronizer(translator, debounce_seconds=debounce_seconds)
        self.translation = TranslationInvoker(self.synchronizer, translator)
        self.enhancement = EnhancementInvoker(self.synchronizer, enhancer)
        self.recording = AudioTranscriptionSession(
            device,
            transcription_backend,
            self.synchronizer.append_raw_content,
            graph_factory=graph_factory,
        )
        self._reference_image: ReferenceImage | None = None

    @classmethod
    def from_settings(cls) -> "PromptWorkspace":
        client = build_gemini_client()
        return cls(
            translator=TranslationService(client),
            enhancer=EnhancementService(client),
            device=SoundDeviceMicrophone(),
            transcription_backend=GeminiLiveTranscriber(client),
            debounce_seconds=settings.translation_debounce_seconds,
            gemini_client=client,
        )

    @property
    def reference_image(self) -> ReferenceImage | None:
        return self._reference_image

    def attach_reference_image(self, data: bytes, mime_type: str) -> None:
        self._reference_image = ReferenceImage(data=data, mime_type=mime_type)

    def remove_reference_image(self) -> None:
        self._reference_image = None

    def set_content(self, text: str) -> None:
        self.synchronizer.set_raw_content(text)

    def set_shot_type(self, shot_type: ShotType) -> None:
        self.synchronizer.set_shot_type(shot_type)

    def toggle_movement(self, movement_id: str) -> None:
        self.synchronizer.toggle_movement(movement_id)

    async def translate(self) -> str | None:
        return await self.translation.translate_manual()

    async def enhance(self) -> EnhancementOutcome | None:
        return await self.enhancement.enhance(self._reference_image)

    async def start_recording(self) -> bool:
        return await self.recording.start()

    async def stop_recording(self) -> None:
        await self.recording.stop()

    def snapshot(self) -> WorkspaceSnapshot:
        sync = self.synchronizer
        return WorkspaceSnapshot(
            shot_type=sync.shot_type,
            movement_ids=sync.movement_ids,
            raw_content=sync.raw_content,
            translated_draft=sync.translated_draft,
            assembled_prompt=sync.assembled_prompt,
            is_ai_generated=sync.is_ai_generated,
            needs_translation=sync.needs_translation,
            translation_pending=sync.translation_pending,
            is_translating=self.translation.in_progress,
            is_enhancing=self.enhancement.in_progress,
            is_recording=self.recording.is_recording,
            has_reference_image=self._reference_image is not None,
            can_enhance=not self.enhancement.in_progress and self.enhancement.can_enhance(self._reference_image),
        )

    async def aclose(self) -> None:
        await self.recording.stop()
        await self.synchronizer.aclose()
