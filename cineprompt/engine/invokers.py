"""Single-flight wrappers around the translation and enhancement services.

Each invoker holds an in-progress flag set before its first suspension point
and cleared when the call settles. A second call while the flag is set raises
`OperationInProgressError`; nothing is queued.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from cineprompt.core.exceptions import EnhancementError, OperationInProgressError, TranslationError
from cineprompt.core.metrics import record_enhancement
from cineprompt.engine.prompt_state import strip_wrapping_quotes
from cineprompt.engine.synchronizer import DraftSynchronizer, Translator
from cineprompt.services.enhancement import EnhancementRequest, ReferenceImage

logger = logging.getLogger(__name__)


class Enhancer(Protocol):
    async def enhance(self, request: EnhancementRequest) -> str: ...


class TranslationInvoker:
    def __init__(self, synchronizer: DraftSynchronizer, translator: Translator) -> None:
        self._synchronizer = synchronizer
        self._translator = translator
        self._in_progress = False

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def translate_manual(self) -> str | None:
        """Replace the raw text and the draft with an English translation.

        Returns None without calling the service when there is no text.

        Raises:
            OperationInProgressError: If a manual translation is outstanding.
            TranslationError: If the service fails; state is left untouched.
        """
        if self._in_progress:
            raise OperationInProgressError("translation")
        source = self._synchronizer.raw_content
        if not source.strip():
            return None

        self._in_progress = True
        try:
            translated = await self._translator.translate(source)
        except TranslationError:
            logger.warning("translation.manual_failed", exc_info=True)
            raise
        finally:
            self._in_progress = False

        self._synchronizer.set_raw_content(translated)
        self._synchronizer.set_translated_draft(translated)
        logger.info("translation.manual_applied", extra={"chars": len(translated)})
        return translated


@dataclass(frozen=True)
class EnhancementOutcome:
    prompt: str
    enhanced: bool
    error: str | None = None


class EnhancementInvoker:
    def __init__(self, synchronizer: DraftSynchronizer, enhancer: Enhancer) -> None:
        self._synchronizer = synchronizer
        self._enhancer = enhancer
        self._in_progress = False

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    def can_enhance(self, reference_image: ReferenceImage | None) -> bool:
        return bool(self._synchronizer.raw_content.strip()) or reference_image is not None

    async def enhance(self, reference_image: ReferenceImage | None = None) -> EnhancementOutcome | None:
        if self._in_progress:
            raise OperationInProgressError("enhancement")
        if not self.can_enhance(reference_image):
            return None

        sync = self._synchronizer
        shot_type, content, movement_ids = sync.shot_type, sync.raw_content, sync.movement_ids
        request = EnhancementRequest.build(shot_type, content, movement_ids, reference_image)

        self._in_progress = True
        try:
            result = await self._enhancer.enhance(request)
        except EnhancementError as exc:
            record_enhancement("fallback")
            logger.warning("enhancement.failed_using_fallback error=%r", exc)
            return EnhancementOutcome(
                prompt=sync.deliver_fallback_prompt(shot_type, movement_ids, content),
                enhanced=False,
                error=exc.detail,
            )
        finally:
            self._in_progress = False

        prompt = strip_wrapping_quotes(result)
        sync.override_prompt(prompt)
        record_enhancement("enhanced")
        logger.info("enhancement.applied", extra={"chars": len(prompt)})
        return EnhancementOutcome(prompt=prompt, enhanced=True)
