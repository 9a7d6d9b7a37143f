from contextlib import asynccontextmanager
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from cineprompt.api.v1.router import api_router
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
from cineprompt.core.logging import configure_logging
from cineprompt.core.metrics import get_metrics_payload
from cineprompt.core.request_context import reset_request_id, set_request_id
from cineprompt.core.settings import settings


logger = logging.getLogger("cineprompt")

_STATUS_BY_ERROR: list[tuple[type[AppError], int]] = [
    (UnknownMovementError, 404),
    (OperationInProgressError, 409),
    (ConfigurationError, 503),
    (TranslationError, 502),
    (EnhancementError, 502),
    (TranscriptionSessionError, 502),
    (AudioCaptureError, 503),
]


def _is_polling_request(method: str, path: str) -> bool:
    return method == "GET" and path == "/v1/workspace"


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level, settings.log_file)
    app.state.workspace = getattr(app.state, "workspace", None)
    try:
        yield
    finally:
        workspace = app.state.workspace
        if workspace is not None:
            await workspace.aclose()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    token = set_request_id(request_id)
    start = time.perf_counter()
    try:
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.exception(
                "request_failed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": duration_ms,
                },
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        request_logger = logger.debug if _is_polling_request(request.method, request.url.path) else logger.info
        request_logger(
            "request_complete",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        response.headers["x-request-id"] = request_id
        return response
    finally:
        reset_request_id(token)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    request_id = getattr(request.state, "request_id", None)
    status_code = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 500)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.detail, "request_id": request_id},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "request_id": request_id},
    )


@app.get("/health")
def health(request: Request):
    payload: dict = {"status": "ok"}
    workspace = getattr(request.app.state, "workspace", None)
    client = getattr(workspace, "gemini_client", None)
    if client is not None:
        payload["gemini"] = client.get_circuit_breaker_status()
    return payload


@app.get("/metrics")
def metrics_endpoint():
    return PlainTextResponse(get_metrics_payload(), media_type="text/plain; version=0.0.4; charset=utf-8")


app.include_router(api_router)
