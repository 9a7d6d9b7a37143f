"""Pure prompt composition and the tagged prompt state.

A prompt is either derived from the current inputs (`DerivedPrompt`) or was
written by the enhancement service (`OverriddenPrompt`). Only a raw text edit,
a movement toggle or a shot change moves an overridden prompt back to derived.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from cineprompt.engine.catalog import ShotConfig, describe_movements

PENDING_TRANSLATION_PLACEHOLDER = "..."
FALLBACK_LIGHTING = "Cinematic lighting with professional color grading"

_CYRILLIC = re.compile(r"[а-яА-ЯёЁ]")
_QUOTE_PAIRS = {'"': '"', "'": "'", "“": "”"}


@dataclass(frozen=True)
class DerivedPrompt:
    text: str


@dataclass(frozen=True)
class OverriddenPrompt:
    text: str


PromptState = DerivedPrompt | OverriddenPrompt


def needs_translation(text: str) -> bool:
    """True when the text contains Cyrillic letters.

    Mixed-script input counts as needing translation; other non-Latin scripts
    do not.
    """
    return bool(_CYRILLIC.search(text))


def display_content(raw_content: str, translated_draft: str) -> str:
    if translated_draft:
        return translated_draft
    if needs_translation(raw_content):
        return PENDING_TRANSLATION_PLACEHOLDER
    return raw_content.strip()


def compose_prompt(
    shot_config: ShotConfig,
    movement_ids: Iterable[str],
    raw_content: str,
    translated_draft: str,
) -> str:
    content = display_content(raw_content, translated_draft)
    content_part = ""
    if content and content != PENDING_TRANSLATION_PLACEHOLDER:
        content_part = f" featuring {content}"
    return f"{shot_config.shot} using a {shot_config.lens}{content_part}. {describe_movements(movement_ids)}"


def compose_fallback_prompt(shot_config: ShotConfig, movement_ids: Iterable[str], raw_content: str) -> str:
    """Deterministic stand-in for an enhanced prompt when the service fails."""
    return (
        f"{shot_config.shot} using a {shot_config.lens} at {shot_config.aperture} "
        f"featuring {raw_content}, {FALLBACK_LIGHTING}. {describe_movements(movement_ids)}"
    )


def strip_wrapping_quotes(text: str) -> str:
    """Remove one matching pair of quotes wrapping the whole text."""
    text = text.strip()
    if len(text) >= 2 and _QUOTE_PAIRS.get(text[0]) == text[-1]:
        return text[1:-1]
    return text
