"""Tests for application-level exception types."""

import pytest

from cineprompt.core.exceptions import (
    AppError,
    AudioCaptureError,
    ConfigurationError,
    EnhancementError,
    OperationInProgressError,
    TranscriptionSessionError,
    TranslationError,
    UnknownMovementError,
)


class TestAppError:
    def test_message_and_detail(self):
        err = AppError("something broke", detail="user-friendly msg")
        assert str(err) == "something broke"
        assert err.detail == "user-friendly msg"

    def test_detail_defaults_to_message(self):
        err = AppError("fallback message")
        assert err.detail == "fallback message"


class TestDomainExceptions:
    @pytest.mark.parametrize(
        "exc_class",
        [ConfigurationError, TranslationError, EnhancementError, AudioCaptureError, TranscriptionSessionError],
    )
    def test_inherits_app_error(self, exc_class):
        assert issubclass(exc_class, AppError)

    def test_operation_in_progress_names_operation(self):
        err = OperationInProgressError("enhancement")
        assert err.operation == "enhancement"
        assert "enhancement" in str(err)
        assert err.detail == "enhancement already running"

    def test_unknown_movement_keeps_id(self):
        err = UnknownMovementError("MOONWALK")
        assert err.movement_id == "MOONWALK"
        assert "MOONWALK" in str(err)
        assert err.detail == "Movement not found"
