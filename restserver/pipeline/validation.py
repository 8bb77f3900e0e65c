"""Request validation applied before routing."""

from typing import Iterable, Optional

from restserver.domain.http_types import HttpRequest, HttpResponse
from restserver.domain.response_builders import (
    bad_request_response,
    entity_too_large_response,
    forbidden_response,
    method_not_allowed_response,
)


class RequestEntityTooLarge(Exception):
    """Raised when a request body exceeds configured limits."""


def enforce_allowed_method(
    request: HttpRequest, allowed_methods: Iterable[str]
) -> Optional[HttpResponse]:
    """Ensure the HTTP method is part of the supported allowlist."""
    if request.method in allowed_methods:
        return None
    return method_not_allowed_response(request, allowed_methods)


def enforce_safe_path(request: HttpRequest) -> Optional[HttpResponse]:
    """Reject paths that are not absolute or that climb out with '..'."""
    if not request.path.startswith("/") or "\x00" in request.path:
        return bad_request_response(request)
    if ".." in request.path.split("/"):
        return forbidden_response(request)
    return None


def enforce_body_constraints(
    request: HttpRequest, max_body_bytes: int
) -> Optional[HttpResponse]:
    """Validate Content-Length against the received body and the size limit."""
    declared_length = request.headers.get("content-length")
    if declared_length is None:
        return bad_request_response(request)
    try:
        content_length = int(declared_length)
    except ValueError:
        return bad_request_response(request)
    if content_length != len(request.body):
        return bad_request_response(request)
    if content_length > max_body_bytes:
        return entity_too_large_response()
    return None


def validate_request(
    request: HttpRequest,
    allowed_methods: Iterable[str],
    body_methods: Iterable[str],
    max_body_bytes: int,
) -> Optional[HttpResponse]:
    """Return an error response when the request fails validation checks."""
    method_error = enforce_allowed_method(request, allowed_methods)
    if method_error is not None:
        return method_error

    path_error = enforce_safe_path(request)
    if path_error is not None:
        return path_error

    if request.method in body_methods:
        return enforce_body_constraints(request, max_body_bytes)

    return None
