from __future__ import annotations

import logging
from typing import Protocol

from cineprompt.core.exceptions import TranslationError
from cineprompt.core.settings import settings
from cineprompt.services.vertex_gemini import GeminiError

logger = logging.getLogger(__name__)

TRANSLATION_INSTRUCTION = """
ROLE: Professional translator for cinematographers.
TASK: Translate the provided text into professional, descriptive cinematic English.
RULES:
- Output ONLY the translated text.
- Use industry terms (e.g., "protagonist" instead of "man", "urban landscape" instead of "city").
- Keep the meaning but make it read like a screenplay line or a prompt.
- 100% English only.
""".strip()


class TextGenerator(Protocol):
    async def generate_text(self, prompt: str, **kwargs) -> str: ...


class TranslationService:
    """Turns a scene description in any language into cinematic English."""

    def __init__(self, client: TextGenerator, *, temperature: float | None = None) -> None:
        self._client = client
        self._temperature = settings.translation_temperature if temperature is None else temperature

    async def translate(self, text: str) -> str:
        try:
            translated = await self._client.generate_text(
                text,
                request_type="translate",
                system_instruction=TRANSLATION_INSTRUCTION,
                temperature=self._temperature,
            )
        except GeminiError as exc:
            raise TranslationError(f"Translation failed: {exc}", detail="Translation failed") from exc

        translated = translated.strip()
        if not translated:
            raise TranslationError("Translation returned empty text", detail="Translation failed")
        logger.debug("translation.completed", extra={"chars": len(translated)})
        return translated
