"""Process-wide application context slot."""

import logging
import threading
from typing import Any, Optional, Protocol, Union

from restserver.domain.request_context import CorrelationLoggerAdapter
from restserver.lifecycle.errors import SingletonViolation

CONTEXT_LOGGER = CorrelationLoggerAdapter(logging.getLogger("rest_server.context"), {})


class ApplicationContext(Protocol):  # pylint: disable=too-few-public-methods
    """Application-scoped resources owned by the server for the process lifetime."""

    def close(self) -> None:
        """Release the resources held by the context."""


class ApplicationContextSlot:
    """Holds at most one installed application context."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._context: Optional[ApplicationContext] = None

    def install(self, context: ApplicationContext) -> None:
        """Install context, failing if another context is already installed."""
        with self._lock:
            if self._context is not None:
                raise SingletonViolation(
                    "Only one application context can be installed per process"
                )
            self._context = context
        CONTEXT_LOGGER.info(
            "Application context installed",
            extra={
                "event": "context_installed",
                "context_type": type(context).__name__,
            },
        )

    def get(self) -> Optional[ApplicationContext]:
        """Return the installed context, or None."""
        with self._lock:
            return self._context

    def clear(self, context: ApplicationContext) -> bool:
        """Empty the slot if it still holds context."""
        with self._lock:
            if self._context is not context:
                return False
            self._context = None
            return True


APPLICATION_CONTEXT = ApplicationContextSlot()


def get_application_context() -> Optional[ApplicationContext]:
    """Return the application context installed in this process, if any."""
    return APPLICATION_CONTEXT.get()


def close_quietly(
    resource: Any,
    logger: Union[logging.Logger, logging.LoggerAdapter],
    name: str,
) -> bool:
    """Close resource, logging and suppressing any failure."""
    try:
        resource.close()
    except Exception as error:  # pylint: disable=broad-except
        logger.error(
            "Failed to release resource",
            extra={
                "event": "shutdown_resource_error",
                "resource": name,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
        return False
    return True
