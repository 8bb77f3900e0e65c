"""HTTP engine interface and the default thread-per-connection engine."""

import logging
import socket
import threading
from typing import Any, Optional, Protocol

from restserver.bootstrap.config import EngineSettings
from restserver.domain.request_context import CorrelationLoggerAdapter
from restserver.pipeline.router import RouteTable
from restserver.transport.accept_loop import run_accept_loop
from restserver.transport.context import WorkerContext
from restserver.transport.socket_factory import ACCEPT_POLL_SECONDS, create_server_socket

ENGINE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("rest_server.transport.engine"), {}
)


class HttpEngine(Protocol):
    """A listener bound to a port that dispatches requests into a route table."""

    def start(self) -> None:
        """Bind the port and begin serving; raise BindError if binding fails."""

    def stop(self) -> None:
        """Stop accepting connections and release the listener."""


class ThreadedHttpEngine:
    """Accept loop on a background thread, one daemon thread per connection."""

    def __init__(
        self, settings: EngineSettings, routes: RouteTable, application_context: Any
    ) -> None:
        self._settings = settings
        self._context = WorkerContext(
            settings=settings, routes=routes, application_context=application_context
        )
        self._lock = threading.Lock()
        self._server_socket: Optional[socket.socket] = None
        self._accept_thread: Optional[threading.Thread] = None
        self._address: Optional[tuple[str, int]] = None

    @property
    def address(self) -> Optional[tuple[str, int]]:
        """The bound (host, port), once started."""
        return self._address

    def is_running(self) -> bool:
        thread = self._accept_thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self._accept_thread is not None or self._context.is_draining():
                raise RuntimeError("HTTP engine can only be started once")
            self._server_socket = create_server_socket(self._settings)
            self._address = self._server_socket.getsockname()[:2]
            self._accept_thread = threading.Thread(
                target=run_accept_loop,
                args=(self._server_socket, self._context),
                name="rest-server-accept",
                daemon=True,
            )
            self._accept_thread.start()
        ENGINE_LOGGER.info(
            "Server listening for connections",
            extra={
                "event": "server_listening",
                "host": self._address[0],
                "port": self._address[1],
            },
        )

    def stop(self) -> None:
        with self._lock:
            if self._context.is_draining():
                return
            self._context.stop_event.set()
            thread = self._accept_thread
        if thread is None:
            return
        thread.join(timeout=ACCEPT_POLL_SECONDS * 4)
        grace_seconds = self._settings.shutdown_grace_seconds
        ENGINE_LOGGER.info(
            "Waiting for active connections to complete",
            extra={"event": "shutdown_waiting", "grace_seconds": grace_seconds},
        )
        if not self._context.registry.wait_for_workers(grace_seconds):
            ENGINE_LOGGER.warning(
                "Stopping with workers still running; the application context "
                "may be released under them",
                extra={
                    "event": "workers_outlived_grace",
                    "grace_seconds": grace_seconds,
                },
            )
        ENGINE_LOGGER.info("HTTP engine stopped", extra={"event": "engine_stopped"})
