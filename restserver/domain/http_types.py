"""Shared HTTP type definitions to avoid circular imports."""

from dataclasses import dataclass
from http import HTTPStatus
from typing import Optional


@dataclass
class HttpRequest:
    """Represents a parsed HTTP request."""

    method: str
    path: str
    headers: dict[str, str]
    body: bytes
    query: str = ""


@dataclass
class HttpResponse:
    """Represents an HTTP response to be sent to a client."""

    status_line: str
    headers: dict[str, str]
    body: bytes
    close_connection: bool

    @property
    def status_code(self) -> int:
        return int(self.status_line.split(" ", 2)[1])


def status_line(status: int) -> str:
    """Build an HTTP/1.1 status line for a numeric status code."""
    return f"HTTP/1.1 {status} {HTTPStatus(status).phrase}"


def should_close(headers: Optional[dict[str, str]]) -> bool:
    """Determine whether the connection should be closed after responding."""
    if headers is None:
        return True
    return headers.get("connection", "").lower() == "close"
