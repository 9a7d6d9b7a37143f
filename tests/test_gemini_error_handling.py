"""Tests for Gemini client error handling and graceful degradation."""

import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from cineprompt.services.vertex_gemini import (
    CircuitBreakerState,
    GeminiError,
    GeminiContentFilterError,
    GeminiCircuitOpenError,
    GeminiClient,
    GeminiModelUnavailableError,
)


def _text_response(text: str):
    part = SimpleNamespace(text=text)
    candidate = SimpleNamespace(
        content=SimpleNamespace(parts=[part]),
        finish_reason=None,
        safety_ratings=None,
    )
    return SimpleNamespace(candidates=[candidate], response_id="resp-1", usage_metadata=None)


def _make_client(**overrides):
    kwargs = dict(
        project=None,
        location=None,
        api_key="test-key",
        text_model="test-model",
        live_model="test-live-model",
        initial_backoff_seconds=0,
        rate_limit_backoff_seconds=[0],
    )
    kwargs.update(overrides)
    with patch("cineprompt.services.vertex_gemini.genai"):
        return GeminiClient(**kwargs)


class TestCircuitBreakerState:
    """Tests for CircuitBreakerState."""

    def test_initial_state_is_closed(self):
        cb = CircuitBreakerState()
        assert not cb.is_open
        assert not cb.is_half_open
        assert cb.failure_count == 0

    def test_opens_after_threshold_failures(self):
        cb = CircuitBreakerState(failure_threshold=3)

        cb.record_failure()
        assert not cb.is_open
        cb.record_failure()
        assert not cb.is_open
        cb.record_failure()
        assert cb.is_open

    def test_success_while_closed_clears_failures(self):
        cb = CircuitBreakerState(failure_threshold=3)
        cb.record_failure()
        cb.record_failure()

        cb.record_success()

        assert cb.failure_count == 0

    def test_half_open_after_timeout(self):
        cb = CircuitBreakerState(failure_threshold=2, recovery_timeout_seconds=1)

        cb.record_failure()
        cb.record_failure()
        assert cb.is_open

        # Simulate time passing
        cb.circuit_open_until = datetime.now(timezone.utc) - timedelta(seconds=1)
        assert not cb.is_open
        assert cb.is_half_open

    def test_closes_after_successes_in_half_open(self):
        cb = CircuitBreakerState(
            failure_threshold=2,
            recovery_timeout_seconds=1,
            half_open_success_threshold=2,
        )

        cb.record_failure()
        cb.record_failure()
        cb.circuit_open_until = datetime.now(timezone.utc) - timedelta(seconds=1)
        assert cb.is_half_open

        cb.record_success()
        assert cb.is_half_open  # Still half-open after 1 success

        cb.record_success()
        assert not cb.is_half_open
        assert cb.failure_count == 0

    def test_check_circuit_raises_when_open(self):
        cb = CircuitBreakerState(failure_threshold=1)
        cb.record_failure()

        with pytest.raises(GeminiCircuitOpenError) as exc_info:
            cb.check_circuit()

        assert "Circuit breaker is open" in str(exc_info.value)
        assert exc_info.value.retry_after is not None


class TestGeminiClientErrorClassification:
    @pytest.fixture
    def client(self):
        return _make_client()

    def test_requires_credentials(self):
        with pytest.raises(RuntimeError):
            _make_client(api_key=None)

    @pytest.mark.parametrize(
        "message, expected",
        [
            ("RESOURCE_EXHAUSTED: quota exceeded", ("rate_limit", True)),
            ("429 Too Many Requests", ("rate_limit", True)),
            ("Content blocked by SAFETY filter", ("content_filter", False)),
            ("Request timeout after 60s", ("timeout", True)),
            ("503 Service Unavailable", ("model_unavailable", True)),
            ("400 Invalid request: malformed prompt", ("invalid_request", False)),
            ("connection reset by peer", ("unknown", True)),
        ],
    )
    def test_classifies_by_message(self, client, message, expected):
        assert client._classify_error(Exception(message), message) == expected

    def test_asyncio_timeout_is_timeout(self, client):
        assert client._classify_error(asyncio.TimeoutError(), "") == ("timeout", True)


class TestGeminiClientCircuitBreaker:
    @pytest.fixture
    def client(self):
        return _make_client(circuit_breaker_threshold=2, circuit_breaker_timeout=60)

    def test_get_circuit_breaker_status(self, client):
        status = client.get_circuit_breaker_status()

        assert set(status) == {"translate", "enhance"}
        assert status["translate"]["is_open"] is False
        assert status["enhance"]["failure_count"] == 0
        assert status["enhance"]["last_failure_time"] is None

    def test_status_reports_open_circuit(self, client):
        cb = client._circuit_breakers["translate"]
        cb.record_failure()
        cb.record_failure()

        status = client.get_circuit_breaker_status()

        assert status["translate"]["is_open"] is True
        assert status["translate"]["failure_count"] == 2
        assert status["translate"]["circuit_open_until"] is not None
        assert status["translate"]["last_failure_time"] is not None
        assert status["enhance"]["is_open"] is False

    @pytest.mark.anyio
    async def test_open_circuit_short_circuits_calls(self, client):
        client._client.aio.models.generate_content = AsyncMock()
        cb = client._circuit_breakers["enhance"]
        cb.record_failure()
        cb.record_failure()

        with pytest.raises(GeminiCircuitOpenError):
            await client.generate_text("prompt", request_type="enhance")

        client._client.aio.models.generate_content.assert_not_called()


class TestGenerateText:
    @pytest.mark.anyio
    async def test_returns_joined_text(self):
        client = _make_client()
        client._client.aio.models.generate_content = AsyncMock(return_value=_text_response("  Hello there  "))

        text = await client.generate_text("Привет", request_type="translate", temperature=0.3)

        assert text == "Hello there"
        call = client._client.aio.models.generate_content.await_args
        assert call.kwargs["model"] == "test-model"
        assert client._circuit_breakers["translate"].failure_count == 0

    @pytest.mark.anyio
    async def test_retries_transient_failures(self):
        client = _make_client(max_retries=3)
        client._client.aio.models.generate_content = AsyncMock(
            side_effect=[Exception("connection reset"), _text_response("ok")]
        )

        assert await client.generate_text("x", request_type="translate") == "ok"
        assert client._client.aio.models.generate_content.await_count == 2

    @pytest.mark.anyio
    async def test_falls_back_when_primary_unavailable(self):
        client = _make_client(max_retries=1, fallback_text_model="fallback-model")
        client._client.aio.models.generate_content = AsyncMock(
            side_effect=[Exception("503 Service Unavailable"), _text_response("from fallback")]
        )

        assert await client.generate_text("x", request_type="enhance") == "from fallback"
        models = [call.kwargs["model"] for call in client._client.aio.models.generate_content.await_args_list]
        assert models == ["test-model", "fallback-model"]

    @pytest.mark.anyio
    async def test_unavailable_without_fallback_raises(self):
        client = _make_client(max_retries=1)
        client._client.aio.models.generate_content = AsyncMock(side_effect=Exception("503 Service Unavailable"))

        with pytest.raises(GeminiModelUnavailableError):
            await client.generate_text("x", request_type="translate")
        assert client._circuit_breakers["translate"].failure_count == 1

    @pytest.mark.anyio
    async def test_non_retryable_error_is_not_retried(self):
        client = _make_client(max_retries=3)
        client._client.aio.models.generate_content = AsyncMock(side_effect=Exception("400 Invalid request"))

        with pytest.raises(GeminiError):
            await client.generate_text("x", request_type="translate")
        assert client._client.aio.models.generate_content.await_count == 1

    @pytest.mark.anyio
    async def test_safety_block_raises_content_filter_error(self):
        client = _make_client()
        response = _text_response("")
        response.candidates[0].finish_reason = "FinishReason.SAFETY"
        response.candidates[0].safety_ratings = [SimpleNamespace(blocked=True, category="HARM_CATEGORY_HARASSMENT")]
        client._client.aio.models.generate_content = AsyncMock(return_value=response)

        with pytest.raises(GeminiContentFilterError) as exc_info:
            await client.generate_text("x", request_type="enhance")
        assert exc_info.value.blocked_categories == ["HARM_CATEGORY_HARASSMENT"]

    @pytest.mark.anyio
    async def test_empty_candidates_raise(self):
        client = _make_client()
        client._client.aio.models.generate_content = AsyncMock(
            return_value=SimpleNamespace(candidates=[], response_id=None, usage_metadata=None)
        )

        with pytest.raises(GeminiError):
            await client.generate_text("x", request_type="translate")

    @pytest.mark.anyio
    async def test_empty_fallback_response_names_fallback_model(self):
        client = _make_client(max_retries=1, fallback_text_model="fallback-model")
        client._client.aio.models.generate_content = AsyncMock(
            side_effect=[
                Exception("503 Service Unavailable"),
                SimpleNamespace(candidates=[], response_id=None, usage_metadata=None),
            ]
        )

        with pytest.raises(GeminiError) as exc_info:
            await client.generate_text("x", request_type="enhance")
        assert exc_info.value.model == "fallback-model"


class TestGeminiExceptionTypes:
    def test_gemini_error_has_request_id(self):
        exc = GeminiError("Test error", request_id="req-123", model="test-model")
        assert exc.request_id == "req-123"
        assert exc.model == "test-model"
        assert "Test error" in str(exc)

    def test_circuit_open_error_has_retry_after(self):
        retry_time = datetime.now(timezone.utc) + timedelta(seconds=60)
        exc = GeminiCircuitOpenError("Circuit open", retry_after=retry_time)
        assert exc.retry_after == retry_time
