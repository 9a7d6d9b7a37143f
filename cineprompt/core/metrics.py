from __future__ import annotations

from contextlib import asynccontextmanager

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

registry = CollectorRegistry(auto_describe=True)

GEMINI_CALL_DURATION = Histogram(
    "cineprompt_gemini_call_duration_seconds",
    "Latency for Gemini API calls per operation.",
    ["operation"],
    registry=registry,
)

GEMINI_CALLS_TOTAL = Counter(
    "cineprompt_gemini_calls_total",
    "Total Gemini API calls partitioned by operation and status.",
    ["operation", "status"],
    registry=registry,
)

AUTO_TRANSLATIONS_TOTAL = Counter(
    "cineprompt_auto_translations_total",
    "Debounced translations by outcome (applied, superseded, failed).",
    ["outcome"],
    registry=registry,
)

ENHANCEMENTS_TOTAL = Counter(
    "cineprompt_enhancements_total",
    "Enhancement attempts by outcome (enhanced, fallback).",
    ["outcome"],
    registry=registry,
)

AUDIO_FRAMES_SENT_TOTAL = Counter(
    "cineprompt_audio_frames_sent_total",
    "PCM frames forwarded to the transcription session.",
    registry=registry,
)

TRANSCRIPT_FRAGMENTS_TOTAL = Counter(
    "cineprompt_transcript_fragments_total",
    "Transcript fragments appended to the scene description.",
    registry=registry,
)


@asynccontextmanager
async def track_gemini_call(operation: str):
    timer = GEMINI_CALL_DURATION.labels(operation=operation).time()
    timer.__enter__()
    try:
        yield
        GEMINI_CALLS_TOTAL.labels(operation=operation, status="success").inc()
    except Exception:
        GEMINI_CALLS_TOTAL.labels(operation=operation, status="error").inc()
        raise
    finally:
        timer.__exit__(None, None, None)


def record_auto_translation(outcome: str) -> None:
    AUTO_TRANSLATIONS_TOTAL.labels(outcome=outcome).inc()


def record_enhancement(outcome: str) -> None:
    ENHANCEMENTS_TOTAL.labels(outcome=outcome).inc()


def record_audio_frame_sent() -> None:
    AUDIO_FRAMES_SENT_TOTAL.inc()


def record_transcript_fragment() -> None:
    TRANSCRIPT_FRAGMENTS_TOTAL.inc()


def get_metrics_payload() -> bytes:
    return generate_latest(registry)
