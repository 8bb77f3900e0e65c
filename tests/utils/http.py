"""Utilities for interacting with raw HTTP over sockets in tests."""

from __future__ import annotations

import socket
import time
from dataclasses import dataclass
from typing import Dict, List

HEADER_DELIMITER = b"\r\n\r\n"


@dataclass(slots=True)
class RawHttpResponse:
    """Structured view of an HTTP response captured from a socket."""

    status_line: str
    headers: Dict[str, str]
    body: bytes

    @property
    def status_code(self) -> int:
        return int(self.status_line.split()[1])


def reserve_port(host: str = "127.0.0.1") -> int:
    """Return an available TCP port bound to the given host without listening."""

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


def wait_for_port(host: str, port: int, timeout: float = 5.0) -> None:
    """Block until a TCP connection to host:port succeeds or timeout elapses."""

    deadline = time.perf_counter() + timeout
    while time.perf_counter() < deadline:
        try:
            with socket.create_connection((host, port), timeout=0.1):
                return
        except OSError:
            time.sleep(0.05)
    raise RuntimeError(f"Server did not start on {host}:{port} within {timeout}s")


def read_http_response(sock: socket.socket) -> RawHttpResponse:
    """Read and parse a Content-Length delimited HTTP response from a socket."""

    buffer = b""
    while HEADER_DELIMITER not in buffer:
        chunk = sock.recv(4096)
        if not chunk:
            raise RuntimeError("Connection closed before headers were received")
        buffer += chunk
    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    header_lines = header_block.decode().split("\r\n")
    headers = _parse_headers(header_lines[1:])
    content_length = int(headers.get("content-length", "0"))
    body = remainder
    while len(body) < content_length:
        chunk = sock.recv(4096)
        if not chunk:
            raise RuntimeError("Connection closed before body completed")
        body += chunk
    return RawHttpResponse(header_lines[0], headers, body[:content_length])


def _parse_headers(lines: List[str]) -> Dict[str, str]:
    """Convert header lines into a normalized dictionary."""

    parsed: Dict[str, str] = {}
    for line in lines:
        if ": " not in line:
            continue
        name, value = line.split(": ", 1)
        parsed[name.lower()] = value
    return parsed


def send_raw_request(host: str, port: int, request: bytes) -> RawHttpResponse:
    """Send raw request bytes on a fresh connection and read one response."""

    with socket.create_connection((host, port), timeout=2.0) as sock:
        sock.sendall(request)
        return read_http_response(sock)


def wait_for_healthz_status(
    host: str, port: int, expected_status: int, timeout: float = 5.0
) -> bool:
    """Poll /healthz endpoint until it returns the expected status code."""
    deadline = time.perf_counter() + timeout
    while time.perf_counter() < deadline:
        try:
            response = send_raw_request(
                host, port, b"GET /healthz HTTP/1.1\r\nHost: localhost\r\n\r\n"
            )
            if response.status_code == expected_status:
                return True
        except (OSError, RuntimeError, ValueError):
            pass
        time.sleep(0.1)
    return False
