"""Startup argument parsing, config file loading and engine settings."""

import json
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from restserver.lifecycle.errors import ConfigLoadError, UsageError

MIN_PORT = 1
MAX_PORT = 65535

DEFAULT_HOST = "localhost"
DEFAULT_SOCKET_TIMEOUT = 60
DEFAULT_SHUTDOWN_GRACE_SECONDS = 5
DEFAULT_MAX_BODY_BYTES = 5 * 1024 * 1024

HEADER_DELIMITER = b"\r\n\r\n"
MAX_HEADER_BYTES = 64 * 1024
HEALTHZ_PATH = "/healthz"
ALLOWED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

SECURITY_HEADERS = {
    "Content-Security-Policy": "default-src 'self'",
    "X-Content-Type-Options": "nosniff",
}


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class StartupConfig:
    """Validated startup arguments: the port and the parsed config document."""

    port: int
    document: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    source: Optional[str] = None


@dataclass(frozen=True)
class EngineSettings:
    """Listener settings handed to the HTTP engine."""

    host: str
    port: int
    socket_timeout: int = DEFAULT_SOCKET_TIMEOUT
    shutdown_grace_seconds: int = DEFAULT_SHUTDOWN_GRACE_SECONDS
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES


def format_usage(prog: str) -> str:
    """Return the one-line usage message for the server program."""
    return f"usage: {prog} <port> [<config-file>]"


def parse_port(value: str, prog: str) -> int:
    """Convert the port argument, rejecting anything but a decimal in range."""
    if not value.isdigit() or not value.isascii():
        raise UsageError(f"port must be an integer, got {value!r}", format_usage(prog))
    port = int(value)
    if port < MIN_PORT or port > MAX_PORT:
        raise UsageError(
            f"port must be between {MIN_PORT} and {MAX_PORT}, got {port}",
            format_usage(prog),
        )
    return port


def read_config_document(path: str) -> Mapping[str, Any]:
    """Read a JSON object from path as a read-only mapping."""
    try:
        with open(path, encoding="utf-8") as config_file:
            document = json.load(config_file)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as error:
        raise ConfigLoadError(path, error) from error
    if not isinstance(document, dict):
        cause = ValueError(
            f"top-level JSON value must be an object, got {type(document).__name__}"
        )
        raise ConfigLoadError(path, cause)
    return MappingProxyType(document)


def parse_startup_args(argv: list[str], prog: str = "restserver") -> StartupConfig:
    """Turn raw startup arguments into a StartupConfig.

    Raises UsageError for a wrong argument count or an invalid port, and
    ConfigLoadError when the optional config file is missing or malformed.
    """
    args = list(argv)
    if not 1 <= len(args) <= 2:
        raise UsageError(
            f"expected 1 or 2 arguments, got {len(args)}", format_usage(prog)
        )
    # Every token is positional: "--" and "-name" are literal values.
    port = parse_port(args[0], prog)
    if len(args) == 1:
        return StartupConfig(port=port)
    config_path = args[1]
    return StartupConfig(
        port=port,
        document=read_config_document(config_path),
        source=config_path,
    )


def engine_settings_for(port: int) -> EngineSettings:
    """Build engine settings for port from the REST_SERVER_* environment."""
    return EngineSettings(
        host=os.getenv("REST_SERVER_HOST", DEFAULT_HOST),
        port=port,
        socket_timeout=env_int("REST_SERVER_SOCKET_TIMEOUT", DEFAULT_SOCKET_TIMEOUT),
        shutdown_grace_seconds=env_int(
            "REST_SERVER_SHUTDOWN_GRACE_SECONDS", DEFAULT_SHUTDOWN_GRACE_SECONDS
        ),
        max_body_bytes=env_int("REST_SERVER_MAX_BODY_BYTES", DEFAULT_MAX_BODY_BYTES),
    )
