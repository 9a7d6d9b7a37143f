from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from cineprompt.core.exceptions import EnhancementError
from cineprompt.core.settings import settings
from cineprompt.engine.catalog import ShotType, describe_movements, get_shot_config
from cineprompt.services.translation import TextGenerator
from cineprompt.services.vertex_gemini import GeminiError

logger = logging.getLogger(__name__)

ENHANCEMENT_INSTRUCTION = """
ROLE: Professional cinematography prompt constructor.
STRICT LANGUAGE RULE: THE ENTIRE OUTPUT MUST BE IN ENGLISH.
MANDATORY TRANSLATION: Translate everything into professional, descriptive, high-end cinematic English.
STRUCTURE: A single, seamless, evocative paragraph.
CONTENT FORMULA:
1. Technical shot specs: [Shot type & lens specs].
2. Scene description: translated to English, with visual DNA from the image if one is attached.
3. Atmosphere: mood, lighting, and film stock details.
4. Camera movement: precise technical path (handle multiple movements if provided).
NO EXPLANATIONS: Return only the final English prompt.
""".strip()


@dataclass(frozen=True)
class ReferenceImage:
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class EnhancementRequest:
    shot_specs: str
    content: str
    movement_description: str
    reference_image: ReferenceImage | None = None

    @classmethod
    def build(
        cls,
        shot_type: ShotType,
        content: str,
        movement_ids: Iterable[str],
        reference_image: ReferenceImage | None = None,
    ) -> "EnhancementRequest":
        config = get_shot_config(shot_type)
        return cls(
            shot_specs=f"{config.shot} using a {config.lens} at {config.aperture}.",
            content=content,
            movement_description=describe_movements(movement_ids),
            reference_image=reference_image,
        )

    def to_prompt(self) -> str:
        return (
            f"Shot Specs: {self.shot_specs}\n"
            f"User Content: {self.content}\n"
            f"Movement Path: {self.movement_description}"
        )


class EnhancementService:
    """Asks the model for a polished single-paragraph cinematic prompt."""

    def __init__(self, client: TextGenerator, *, temperature: float | None = None) -> None:
        self._client = client
        self._temperature = settings.enhancement_temperature if temperature is None else temperature

    async def enhance(self, request: EnhancementRequest) -> str:
        reference_images = None
        if request.reference_image is not None:
            reference_images = [(request.reference_image.data, request.reference_image.mime_type)]

        logger.debug("enhancement.requested", extra={"has_reference_image": reference_images is not None})

        try:
            text = await self._client.generate_text(
                request.to_prompt(),
                request_type="enhance",
                system_instruction=ENHANCEMENT_INSTRUCTION,
                temperature=self._temperature,
                reference_images=reference_images,
            )
        except GeminiError as exc:
            raise EnhancementError(f"Enhancement failed: {exc}", detail="Enhancement failed") from exc

        text = text.strip()
        if not text:
            raise EnhancementError("Enhancement returned empty text", detail="Enhancement failed")
        return text
