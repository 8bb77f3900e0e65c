"""Pure HTTP response builders."""

import json
from typing import Any, Iterable, Optional

from restserver.domain.http_types import (
    HttpRequest,
    HttpResponse,
    should_close,
    status_line,
)


def _request_headers(request: Optional[HttpRequest]) -> Optional[dict[str, str]]:
    return request.headers if request is not None else None


def empty_response(request: HttpRequest, status: int = 200) -> HttpResponse:
    """Return a response with no body."""
    return HttpResponse(status_line(status), {}, b"", should_close(request.headers))


def text_response(
    message: str, request: HttpRequest, status: int = 200
) -> HttpResponse:
    """Return a text/plain response."""
    return HttpResponse(
        status_line(status),
        {"Content-Type": "text/plain; charset=utf-8"},
        message.encode(),
        should_close(request.headers),
    )


def json_response(payload: Any, request: HttpRequest, status: int = 200) -> HttpResponse:
    """Return an application/json response with sorted keys."""
    return HttpResponse(
        status_line(status),
        {"Content-Type": "application/json"},
        json.dumps(payload, sort_keys=True).encode(),
        should_close(request.headers),
    )


def not_found_response(request: HttpRequest) -> HttpResponse:
    """Return a 404 response reusing the connection preference."""
    return HttpResponse(status_line(404), {}, b"", should_close(request.headers))


def forbidden_response(request: Optional[HttpRequest]) -> HttpResponse:
    """Produce a 403 response honoring the caller's connection preference."""
    return HttpResponse(
        status_line(403), {}, b"", should_close(_request_headers(request))
    )


def bad_request_response(request: Optional[HttpRequest]) -> HttpResponse:
    """Produce a 400 response; without a parsed request the connection closes."""
    return HttpResponse(
        status_line(400), {}, b"", should_close(_request_headers(request))
    )


def method_not_allowed_response(
    request: HttpRequest, allowed_methods: Iterable[str]
) -> HttpResponse:
    """Produce a 405 response enumerating the supported HTTP methods."""
    return HttpResponse(
        status_line(405),
        {"Allow": ", ".join(sorted(allowed_methods))},
        b"",
        should_close(request.headers),
    )


def entity_too_large_response() -> HttpResponse:
    """Produce a 413 response that always closes the connection."""
    return HttpResponse(status_line(413), {}, b"", True)


def internal_error_response() -> HttpResponse:
    """Produce a 500 response that always closes the connection."""
    return HttpResponse(status_line(500), {}, b"", True)


def draining_response() -> HttpResponse:
    """Produce a 503 response indicating the server is shutting down."""
    return HttpResponse(status_line(503), {"Connection": "close"}, b"draining", True)


def healthz_response(is_draining: bool) -> HttpResponse:
    """Produce a health check response based on engine state."""
    if is_draining:
        return draining_response()
    return HttpResponse(status_line(200), {}, b"", False)
