from __future__ import annotations

import logging
from typing import Protocol

from cineprompt.core.metrics import record_auto_translation
from cineprompt.core.settings import settings
from cineprompt.engine.catalog import ShotType, get_shot_config
from cineprompt.engine.debounce import LatestOnlyDebouncer
from cineprompt.engine.prompt_state import (
    DerivedPrompt,
    OverriddenPrompt,
    PromptState,
    compose_fallback_prompt,
    compose_prompt,
    needs_translation,
)
from cineprompt.engine.selection import SelectionState

logger = logging.getLogger(__name__)


class Translator(Protocol):
    async def translate(self, text: str) -> str: ...


class DraftSynchronizer:
    """Keeps the assembled prompt consistent with the user's inputs.

    Owns the raw scene text, the English draft derived from it, the shot and
    movement selection, and the prompt state. Every mutation is a plain
    assignment made on the event loop, followed by a synchronous recompute.
    Raw text that needs translation is sent to the translator only after a
    quiet period, and only the latest scheduled translation may land.
    """

    def __init__(
        self,
        translator: Translator,
        *,
        shot_type: ShotType = ShotType.MEDIUM,
        debounce_seconds: float | None = None,
    ) -> None:
        self._translator = translator
        self._selection = SelectionState(shot_type)
        self._raw_content = ""
        self._translated_draft = ""
        self._state: PromptState = DerivedPrompt("")
        delay = settings.translation_debounce_seconds if debounce_seconds is None else debounce_seconds
        self._auto_translation: LatestOnlyDebouncer[str] = LatestOnlyDebouncer(delay, name="translation.auto")
        self._recompute()

    @property
    def raw_content(self) -> str:
        return self._raw_content

    @property
    def translated_draft(self) -> str:
        return self._translated_draft

    @property
    def shot_type(self) -> ShotType:
        return self._selection.shot_type

    @property
    def movement_ids(self) -> tuple[str, ...]:
        return self._selection.movement_ids

    @property
    def prompt_state(self) -> PromptState:
        return self._state

    @property
    def assembled_prompt(self) -> str:
        return self._state.text

    @property
    def is_ai_generated(self) -> bool:
        return isinstance(self._state, OverriddenPrompt)

    @property
    def needs_translation(self) -> bool:
        return needs_translation(self._raw_content)

    @property
    def translation_pending(self) -> bool:
        return self._auto_translation.pending

    def set_raw_content(self, text: str) -> None:
        self._raw_content = text
        self._state = DerivedPrompt(self._state.text)
        self._schedule_translation(text)
        self._recompute()

    def append_raw_content(self, fragment: str) -> None:
        self.set_raw_content(self._raw_content + fragment)

    def set_shot_type(self, shot_type: ShotType) -> None:
        self._selection.set_shot_type(shot_type)
        self._state = DerivedPrompt(self._state.text)
        self._recompute()

    def toggle_movement(self, movement_id: str) -> None:
        self._selection.toggle_movement(movement_id)
        self._state = DerivedPrompt(self._state.text)
        self._recompute()

    def set_translated_draft(self, text: str) -> None:
        self._translated_draft = text
        self._recompute()

    def override_prompt(self, text: str) -> None:
        self._state = OverriddenPrompt(text)

    def deliver_fallback_prompt(self, shot_type: ShotType, movement_ids, raw_content: str) -> str:
        """Show the deterministic enhancement fallback without freezing it."""
        text = compose_fallback_prompt(get_shot_config(shot_type), movement_ids, raw_content)
        self._state = DerivedPrompt(text)
        return text

    async def aclose(self) -> None:
        await self._auto_translation.aclose()

    def _recompute(self) -> None:
        if isinstance(self._state, OverriddenPrompt):
            return
        self._state = DerivedPrompt(
            compose_prompt(
                get_shot_config(self.shot_type),
                self.movement_ids,
                self._raw_content,
                self._translated_draft,
            )
        )

    def _schedule_translation(self, text: str) -> None:
        if not text.strip():
            self._auto_translation.invalidate()
            self._translated_draft = ""
            return
        if not needs_translation(text):
            self._auto_translation.invalidate()
            self._translated_draft = text.strip()
            return
        self._auto_translation.schedule(
            lambda: self._translator.translate(text),
            self._apply_auto_translation,
            on_error=self._on_auto_translation_failed,
            on_superseded=lambda: record_auto_translation("superseded"),
        )

    def _apply_auto_translation(self, translated: str) -> None:
        record_auto_translation("applied")
        logger.debug("translation.auto_applied", extra={"chars": len(translated)})
        self.set_translated_draft(translated)

    def _on_auto_translation_failed(self, exc: Exception) -> None:
        record_auto_translation("failed")
        logger.warning("translation.auto_failed error=%r", exc)
