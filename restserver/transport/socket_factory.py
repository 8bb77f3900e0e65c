"""Listening socket creation."""

import logging
import socket

from restserver.bootstrap.config import EngineSettings
from restserver.domain.request_context import CorrelationLoggerAdapter
from restserver.lifecycle.errors import BindError

SOCKET_LOGGER = CorrelationLoggerAdapter(logging.getLogger("rest_server.socket"), {})

ACCEPT_POLL_SECONDS = 0.5


def create_server_socket(settings: EngineSettings) -> socket.socket:
    """Bind and listen on the configured address; raise BindError on failure."""
    try:
        server_socket = socket.create_server((settings.host, settings.port))
    except OSError as error:
        SOCKET_LOGGER.critical(
            "Failed to bind listening socket",
            extra={
                "event": "bind_failed",
                "host": settings.host,
                "port": settings.port,
                "error_type": type(error).__name__,
                "error": str(error),
            },
        )
        raise BindError(settings.host, settings.port, error) from error
    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    return server_socket
