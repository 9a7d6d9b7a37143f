"""
Centralized Gemini client factory.

The translation, enhancement and transcription services all share one
GeminiClient built from application settings.
"""

from __future__ import annotations

from cineprompt.core.exceptions import ConfigurationError
from cineprompt.core.settings import settings
from cineprompt.services.vertex_gemini import GeminiClient


class GeminiNotConfiguredError(ConfigurationError):
    """Raised when Gemini API credentials are missing."""

    def __init__(self) -> None:
        super().__init__(
            "Gemini is not configured. Set GEMINI_API_KEY or GOOGLE_CLOUD_PROJECT.",
            detail="Gemini is not configured",
        )


def build_gemini_client() -> GeminiClient:
    """Build a GeminiClient from application settings.

    Raises:
        GeminiNotConfiguredError: If neither API key nor GCP project is set.
    """
    if not settings.google_cloud_project and not settings.gemini_api_key:
        raise GeminiNotConfiguredError()

    return GeminiClient(
        project=settings.google_cloud_project,
        location=settings.google_cloud_location,
        api_key=settings.gemini_api_key,
        text_model=settings.gemini_text_model,
        live_model=settings.gemini_live_model,
        timeout_seconds=settings.gemini_timeout_seconds,
        max_retries=settings.gemini_max_retries,
        initial_backoff_seconds=settings.gemini_initial_backoff_seconds,
        fallback_text_model=settings.gemini_fallback_text_model,
        circuit_breaker_threshold=settings.gemini_circuit_breaker_threshold,
        circuit_breaker_timeout=settings.gemini_circuit_breaker_timeout,
    )
