"""Main connection acceptance loop."""

import logging
import socket
import threading

from restserver.domain.request_context import CorrelationLoggerAdapter
from restserver.domain.response_builders import draining_response
from restserver.pipeline.io import send_response
from restserver.transport.context import WorkerContext
from restserver.transport.worker import handle_client

ACCEPT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("rest_server.transport.accept"), {}
)


def _reject_draining(client_socket: socket.socket) -> None:
    try:
        send_response(client_socket, draining_response())
    except OSError:
        pass
    finally:
        client_socket.close()


def run_accept_loop(server_socket: socket.socket, context: WorkerContext) -> None:
    """Accept connections and hand each to a worker thread until stopped."""
    try:
        while not context.is_draining():
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as error:
                if context.is_draining():
                    break
                ACCEPT_LOGGER.error(
                    "Socket accept failed",
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                continue

            if context.is_draining():
                _reject_draining(client_socket)
                break

            if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
                ACCEPT_LOGGER.debug(
                    "Client connection accepted",
                    extra={
                        "event": "client_accepted",
                        "client": f"{client_address[0]}:{client_address[1]}",
                    },
                )
            thread = threading.Thread(
                target=handle_client,
                args=(client_socket, client_address, context),
                daemon=True,
            )
            context.registry.register_worker(thread)
            thread.start()
    finally:
        server_socket.close()
        ACCEPT_LOGGER.info(
            "Listening socket closed", extra={"event": "listener_closed"}
        )
