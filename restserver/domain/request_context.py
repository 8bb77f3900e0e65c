"""Per-request diagnostic context stored in contextvars."""

import contextvars
import logging
import time
import uuid
from typing import Any, MutableMapping, Optional

LOGGER_PREFIX = "rest_server."

_correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)
_client_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "client", default=None
)
_request_start_var: contextvars.ContextVar[Optional[int]] = contextvars.ContextVar(
    "request_start_ns", default=None
)


def generate_correlation_id() -> str:
    """Generate a new correlation ID using UUID4."""
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    """Retrieve the current correlation ID from context."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """Store a correlation ID in the current context."""
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    """Remove the correlation ID from the current context."""
    _correlation_id_var.set(None)


def begin_request(client: str, correlation_id: Optional[str] = None) -> str:
    """Open a request scope for the given client and return its correlation ID."""
    request_id = correlation_id or generate_correlation_id()
    _correlation_id_var.set(request_id)
    _client_var.set(client)
    _request_start_var.set(time.monotonic_ns())
    return request_id


def get_client() -> Optional[str]:
    """Return the client address of the active request, if any."""
    return _client_var.get()


def request_elapsed_ms() -> Optional[float]:
    """Milliseconds since begin_request, or None outside a request."""
    started = _request_start_var.get()
    if started is None:
        return None
    return round((time.monotonic_ns() - started) / 1_000_000, 3)


def clear_request_context() -> None:
    """Drop every request-scoped value from the current context."""
    _correlation_id_var.set(None)
    _client_var.set(None)
    _request_start_var.set(None)


class CorrelationLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that injects correlation ID, component and client into records."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        """Add correlation_id, component and client to the extra dict."""
        if "extra" not in kwargs:
            kwargs["extra"] = {}
        else:
            kwargs["extra"] = dict(kwargs["extra"])

        correlation_id = get_correlation_id()
        kwargs["extra"]["correlation_id"] = (
            correlation_id if correlation_id is not None else "-"
        )

        logger_name = self.logger.name
        if logger_name.startswith(LOGGER_PREFIX):
            component = logger_name[len(LOGGER_PREFIX) :]
        else:
            component = logger_name
        kwargs["extra"]["component"] = component

        client = get_client()
        if client is not None:
            kwargs["extra"].setdefault("client", client)

        return msg, kwargs
