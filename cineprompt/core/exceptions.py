"""
Application-level exception types.

Every failure the prompt workspace can report derives from `AppError`, so the
HTTP layer can map them to status codes in one place.
"""

from __future__ import annotations


class AppError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        self.detail = detail or message
        super().__init__(message)


class ConfigurationError(AppError):
    """Raised when required configuration is missing or invalid."""


class TranslationError(AppError):
    """Raised when the translation service cannot produce English text."""


class EnhancementError(AppError):
    """Raised when the enhancement service cannot produce a prompt."""


class OperationInProgressError(AppError):
    """Raised when a single-flight operation is invoked while one is outstanding."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"{operation} is already in progress",
            detail=f"{operation} already running",
        )
        self.operation = operation


class UnknownMovementError(AppError):
    """Raised when a movement id is not part of the catalog."""

    def __init__(self, movement_id: str) -> None:
        super().__init__(
            f"Movement not found: {movement_id}",
            detail="Movement not found",
        )
        self.movement_id = movement_id


class AudioCaptureError(AppError):
    """Raised when the microphone or the audio graph cannot be acquired."""


class TranscriptionSessionError(AppError):
    """Raised when the streaming transcription session cannot be opened or used."""
