"""Built-in handlers served by every engine."""

import logging

from restserver.domain.http_types import HttpResponse
from restserver.domain.request_context import CorrelationLoggerAdapter
from restserver.domain.response_builders import healthz_response

SYSTEM_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("rest_server.handlers.system"), {}
)


def handle_healthz(is_draining: bool) -> HttpResponse:
    """Handle /healthz requests with current engine state."""
    if SYSTEM_LOGGER.logger.isEnabledFor(logging.DEBUG):
        SYSTEM_LOGGER.debug(
            "Health check performed",
            extra={
                "event": "healthz_check",
                "state": "draining" if is_draining else "serving",
            },
        )
    return healthz_response(is_draining)
