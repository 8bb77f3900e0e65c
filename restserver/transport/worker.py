"""Worker thread logic for handling individual client connections."""

import logging
import socket
import threading
from typing import Optional

from restserver.bootstrap.config import ALLOWED_METHODS, BODY_METHODS
from restserver.domain.http_types import HttpRequest, HttpResponse
from restserver.domain.request_context import (
    CorrelationLoggerAdapter,
    begin_request,
    clear_request_context,
    request_elapsed_ms,
)
from restserver.domain.response_builders import (
    bad_request_response,
    draining_response,
    entity_too_large_response,
)
from restserver.pipeline.io import receive_request, send_response
from restserver.pipeline.router import route_request
from restserver.pipeline.validation import RequestEntityTooLarge, validate_request
from restserver.transport.context import WorkerContext

WORKER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("rest_server.transport.worker"), {}
)


def _read_request_with_validation(
    client_socket: socket.socket,
    buffer: bytes,
    context: WorkerContext,
) -> tuple[Optional[HttpRequest], bytes, bool]:
    """Read a request from the socket while enforcing size limits."""
    max_body_bytes = context.settings.max_body_bytes
    try:
        request, buffer = receive_request(client_socket, buffer, max_body_bytes)
    except RequestEntityTooLarge:
        WORKER_LOGGER.warning(
            "Request body size exceeded limit",
            extra={"event": "body_size_exceeded", "status_code": 413},
        )
        send_response(client_socket, entity_too_large_response())
        return None, b"", True
    except ValueError:
        WORKER_LOGGER.warning(
            "Malformed request received",
            extra={"event": "malformed_request", "status_code": 400},
        )
        send_response(client_socket, bad_request_response(None))
        return None, b"", True

    if request is None:
        if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
            WORKER_LOGGER.debug(
                "Client disconnected during request",
                extra={"event": "client_disconnected"},
            )
        return None, buffer, True
    return request, buffer, False


def _process_request(request: HttpRequest, context: WorkerContext) -> HttpResponse:
    validation_response = validate_request(
        request, ALLOWED_METHODS, BODY_METHODS, context.settings.max_body_bytes
    )
    if validation_response is not None:
        return validation_response
    return route_request(
        request,
        context.routes,
        context.application_context,
        draining=context.is_draining(),
    )


def _cleanup_worker(
    context: WorkerContext, client_socket: socket.socket, thread: threading.Thread
) -> None:
    context.registry.cleanup_worker(thread)
    try:
        client_socket.shutdown(socket.SHUT_WR)
    except OSError:
        pass
    client_socket.close()

    WORKER_LOGGER.debug("Socket closed", extra={"event": "socket_closed"})
    clear_request_context()


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Process requests on a client socket until the connection is closed."""
    buffer = b""
    client_addr_str = f"{client_address[0]}:{client_address[1]}"
    current_thread = threading.current_thread()
    context.registry.register_worker(current_thread)
    client_socket.settimeout(context.settings.socket_timeout)

    try:
        while True:
            begin_request(client_addr_str)

            if context.is_draining():
                send_response(client_socket, draining_response())
                break

            request, buffer, should_terminate = _read_request_with_validation(
                client_socket, buffer, context
            )
            if should_terminate or request is None:
                break

            response = _process_request(request, context)
            send_response(client_socket, response)

            WORKER_LOGGER.info(
                "Request complete",
                extra={
                    "event": "request_complete",
                    "method": request.method,
                    "route": request.path,
                    "status_code": response.status_code,
                    "duration_ms": request_elapsed_ms(),
                },
            )
            clear_request_context()

            if response.close_connection:
                break
    except TimeoutError:
        WORKER_LOGGER.debug(
            "Client connection idle timeout", extra={"event": "connection_timeout"}
        )
    except (ConnectionError, OSError, UnicodeDecodeError) as error:
        WORKER_LOGGER.error(
            "Error handling client connection",
            extra={
                "event": "connection_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
    finally:
        _cleanup_worker(context, client_socket, current_thread)
