import contextvars
from contextlib import contextmanager

request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("request_id", default=None)
operation_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("operation", default=None)


def set_request_id(request_id: str) -> contextvars.Token:
    """Store the current request ID in a context variable."""
    return request_id_var.set(request_id)


def reset_request_id(token: contextvars.Token) -> None:
    """Reset the request ID context variable to a previous state."""
    request_id_var.reset(token)


def get_request_id() -> str | None:
    """Retrieve the current request ID from the context."""
    return request_id_var.get()


def get_operation() -> str | None:
    """Retrieve the workspace operation currently running, for logging."""
    return operation_var.get()


@contextmanager
def log_context(operation: str | None = None):
    """Temporarily scope the operation name for structured logs.

    Tasks spawned inside the block copy the context, so a debounced
    translation started from an edit still logs under that edit's operation.
    """
    token = operation_var.set(operation) if operation is not None else None
    try:
        yield
    finally:
        if token is not None:
            operation_var.reset(token)
