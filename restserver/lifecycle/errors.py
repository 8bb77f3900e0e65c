"""Startup failure taxonomy and the process exit statuses it maps to."""

from enum import IntEnum
from typing import Optional


class ExitStatus(IntEnum):
    """Process exit codes returned by RestServer.start."""

    OK = 0
    USAGE = 1
    CONFIG = 2
    FATAL = 3
    BIND = 4


class ServerStartupError(Exception):
    """Base class for errors that abort server startup."""

    exit_status = ExitStatus.FATAL


class UsageError(ServerStartupError):
    """Raised when startup arguments are missing or malformed."""

    exit_status = ExitStatus.USAGE

    def __init__(self, message: str, usage: str) -> None:
        super().__init__(message)
        self.usage = usage


class ConfigLoadError(ServerStartupError):
    """Raised when the config file cannot be read or is not a JSON object."""

    exit_status = ExitStatus.CONFIG

    def __init__(self, path: str, cause: Exception) -> None:
        super().__init__(f"Unable to read JSON config file {path}: {cause}")
        self.path = path
        self.cause = cause


class SingletonViolation(ServerStartupError):
    """Raised when a second application context is installed in one process."""


class BindError(ServerStartupError):
    """Raised when the HTTP engine cannot bind its listening socket."""

    exit_status = ExitStatus.BIND

    def __init__(self, host: str, port: int, cause: Optional[OSError] = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Unable to bind {host}:{port}{detail}")
        self.host = host
        self.port = port
        self.cause = cause


class UnexpectedStartupError(ServerStartupError):
    """Wraps any other exception raised while bringing the server up."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"{type(cause).__name__}: {cause}")
        self.cause = cause
