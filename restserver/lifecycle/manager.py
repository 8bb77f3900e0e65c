"""Server bootstrap: one application context, one HTTP engine, orderly shutdown.

A RestServer parses ``<port> [<config-file>]``, builds the application
context from the config document, installs it as the process-wide context,
starts the HTTP engine on the port and then blocks until a termination
signal (or request_shutdown) stops the engine and releases the context, in
that order.
"""

import logging
import signal
import sys
import threading
import traceback
from typing import Any, Callable, Mapping, NoReturn, Optional, Sequence

from restserver.bootstrap.config import (
    EngineSettings,
    StartupConfig,
    engine_settings_for,
    parse_startup_args,
)
from restserver.bootstrap.logging_setup import configure_logging_from_env
from restserver.domain.request_context import CorrelationLoggerAdapter
from restserver.lifecycle.context import (
    APPLICATION_CONTEXT,
    ApplicationContext,
    ApplicationContextSlot,
    close_quietly,
)
from restserver.lifecycle.errors import (
    BindError,
    ConfigLoadError,
    ExitStatus,
    ServerStartupError,
    UnexpectedStartupError,
    UsageError,
)
from restserver.lifecycle.state import LifecycleState, ServerLifecycle
from restserver.pipeline.router import RouteTable
from restserver.transport.engine import HttpEngine, ThreadedHttpEngine

SERVER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("rest_server.server"), {})

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)

ContextFactory = Callable[[Mapping[str, Any]], ApplicationContext]
EngineFactory = Callable[[EngineSettings, RouteTable, ApplicationContext], HttpEngine]


class RestServer:  # pylint: disable=too-many-instance-attributes
    """Owns the startup/shutdown sequence of an HTTP service process."""

    def __init__(
        self,
        context_factory: ContextFactory,
        routes: RouteTable,
        *,
        engine_factory: EngineFactory = ThreadedHttpEngine,
        slot: ApplicationContextSlot = APPLICATION_CONTEXT,
        program_name: str = "restserver",
        install_signal_handlers: bool = True,
        configure_logs: bool = True,
        settings_factory: Callable[[int], EngineSettings] = engine_settings_for,
    ) -> None:
        self._context_factory = context_factory
        self._routes = routes
        self._engine_factory = engine_factory
        self._slot = slot
        self._program_name = program_name
        self._install_signal_handlers = install_signal_handlers
        self._configure_logs = configure_logs
        self._settings_factory = settings_factory

        self._lifecycle = ServerLifecycle()
        self._lock = threading.RLock()
        self._context: Optional[ApplicationContext] = None
        self._installed = False
        self._engine: Optional[HttpEngine] = None
        self._previous_handlers: dict[int, Any] = {}
        self._shutdown_requested = False

    @property
    def state(self) -> LifecycleState:
        return self._lifecycle.state

    @property
    def engine(self) -> Optional[HttpEngine]:
        return self._engine

    def wait_until(self, state: LifecycleState, timeout: Optional[float] = None) -> bool:
        """Block until the server reaches state; False on timeout or failure."""
        return self._lifecycle.wait_for(state, timeout)

    def start(self, argv: Sequence[str]) -> ExitStatus:
        """Run the server until shutdown and return the process exit status."""
        if self.state is not LifecycleState.INIT:
            raise RuntimeError("RestServer.start can only be called once")
        if self._configure_logs:
            try:
                configure_logging_from_env()
            except Exception as error:  # pylint: disable=broad-except
                self._lifecycle.transition(LifecycleState.FAILED)
                return self._report_failure(UnexpectedStartupError(error), error)

        try:
            startup = parse_startup_args(list(argv), self._program_name)
        except UsageError as error:
            SERVER_LOGGER.error(
                "Invalid startup arguments",
                extra={"event": "usage_error", "error": str(error)},
            )
            print(error.usage, file=sys.stderr)
            return error.exit_status
        except ConfigLoadError as error:
            SERVER_LOGGER.error(
                "Unable to load config file",
                extra={
                    "event": "config_load_error",
                    "config_source": error.path,
                    "error_type": type(error.cause).__name__,
                },
            )
            print(
                f"Error: Unable to read JSON config file {error.path}:\n{error.cause}",
                file=sys.stderr,
            )
            return error.exit_status

        try:
            self._bring_up(startup)
        except ServerStartupError as error:
            return self._report_failure(error, error)
        except Exception as error:  # pylint: disable=broad-except
            return self._report_failure(UnexpectedStartupError(error), error)

        print(
            f"Server started on port {startup.port}. "
            "Stop the application using CTRL+C"
        )
        try:
            self._lifecycle.wait_for(LifecycleState.STOPPED)
        finally:
            self._restore_signal_handlers()
        return ExitStatus.OK

    def request_shutdown(self) -> bool:
        """Stop the engine, then release the context; runs at most once.

        Errors from either step are logged and suppressed. A request that
        arrives before the server is listening is remembered and honoured as
        soon as listening begins.
        """
        with self._lock:
            self._shutdown_requested = True
            if not self._lifecycle.transition(
                LifecycleState.SHUTTING_DOWN, expected=LifecycleState.LISTENING
            ):
                return False
        SERVER_LOGGER.info("Shutting down server", extra={"event": "shutdown_started"})
        self._stop_engine()
        self._release_context()
        self._lifecycle.transition(LifecycleState.STOPPED)
        SERVER_LOGGER.info("Server shutdown complete", extra={"event": "server_stopped"})
        return True

    def _bring_up(self, startup: StartupConfig) -> None:
        try:
            self._context = self._context_factory(startup.document)
            self._lifecycle.transition(LifecycleState.CONTEXT_CREATED)
            SERVER_LOGGER.info(
                "Application context created",
                extra={
                    "event": "context_created",
                    "context_type": type(self._context).__name__,
                    "config_source": startup.source or "-",
                },
            )
            self._slot.install(self._context)
            self._installed = True

            settings = self._settings_factory(startup.port)
            self._engine = self._engine_factory(settings, self._routes, self._context)
            self._engine.start()
            SERVER_LOGGER.info(
                "HTTP engine started",
                extra={
                    "event": "engine_started",
                    "engine_type": type(self._engine).__name__,
                    "host": settings.host,
                    "port": settings.port,
                },
            )
            self._register_shutdown_handler()
        except BaseException:
            self._abort_startup()
            raise

        with self._lock:
            self._lifecycle.transition(LifecycleState.LISTENING)
            pending = self._shutdown_requested
        if pending:
            self.request_shutdown()

    def _register_shutdown_handler(self) -> None:
        if not self._install_signal_handlers or self._previous_handlers:
            return
        for signum in SHUTDOWN_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)

    def _restore_signal_handlers(self) -> None:
        while self._previous_handlers:
            signum, handler = self._previous_handlers.popitem()
            signal.signal(signum, handler)

    def _handle_signal(self, signum: int, _frame) -> None:
        SERVER_LOGGER.info(
            "Received shutdown signal",
            extra={"event": "shutdown_signal", "signal": signal.Signals(signum).name},
        )
        self.request_shutdown()

    def _stop_engine(self) -> None:
        engine, self._engine = self._engine, None
        if engine is None:
            return
        try:
            engine.stop()
        except Exception as error:  # pylint: disable=broad-except
            SERVER_LOGGER.error(
                "Failed to stop HTTP engine",
                extra={
                    "event": "shutdown_resource_error",
                    "resource": "http_engine",
                    "error_type": type(error).__name__,
                    "error": str(error),
                },
                exc_info=True,
            )

    def _release_context(self) -> None:
        context, self._context = self._context, None
        if context is None:
            return
        if close_quietly(context, SERVER_LOGGER, "application_context"):
            SERVER_LOGGER.info(
                "Application context released", extra={"event": "context_released"}
            )
        if self._installed:
            self._slot.clear(context)
            self._installed = False

    def _abort_startup(self) -> None:
        self._stop_engine()
        self._release_context()
        self._restore_signal_handlers()
        self._lifecycle.transition(LifecycleState.FAILED)

    def _report_failure(
        self, error: ServerStartupError, cause: BaseException
    ) -> ExitStatus:
        SERVER_LOGGER.critical(
            "Server startup failed",
            extra={
                "event": "startup_failed",
                "error_type": type(cause).__name__,
                "exit_status": int(error.exit_status),
            },
            exc_info=(type(cause), cause, cause.__traceback__),
        )
        trace = "".join(
            traceback.format_exception(type(cause), cause, cause.__traceback__)
        )
        if isinstance(error, BindError):
            print(f"Error: {error}\n{trace}")
        else:
            print(f"An exception occurred and the server must shut down.\n{trace}")
        return error.exit_status


def launch(server: RestServer, argv: Optional[Sequence[str]] = None) -> NoReturn:
    """Run server with the process arguments and exit with its status."""
    status = server.start(sys.argv[1:] if argv is None else argv)
    sys.exit(int(status))
