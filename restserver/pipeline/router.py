"""Route table and request dispatch."""

import logging
from typing import Any, Callable, Optional

from restserver.bootstrap.config import ALLOWED_METHODS, HEALTHZ_PATH
from restserver.domain.http_types import HttpRequest, HttpResponse
from restserver.domain.request_context import CorrelationLoggerAdapter
from restserver.domain.response_builders import (
    internal_error_response,
    method_not_allowed_response,
    not_found_response,
)
from restserver.handlers.system_handlers import handle_healthz

ROUTER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("rest_server.pipeline.router"), {}
)

Handler = Callable[[HttpRequest, Any], HttpResponse]


class RouteTable:
    """Maps (method, path) and (method, path prefix) pairs to handlers.

    Handlers are called with the parsed request and the installed
    application context and must return an HttpResponse.
    """

    def __init__(self) -> None:
        self._exact: dict[str, dict[str, Handler]] = {}
        self._prefixes: dict[str, dict[str, Handler]] = {}

    def add(self, method: str, path: str, handler: Handler) -> None:
        """Register handler for an exact path."""
        self._register(self._exact, method, path, handler)

    def add_prefix(self, method: str, prefix: str, handler: Handler) -> None:
        """Register handler for every path starting with prefix."""
        self._register(self._prefixes, method, prefix, handler)

    def route(
        self, method: str, path: str, prefix: bool = False
    ) -> Callable[[Handler], Handler]:
        """Decorator form of add/add_prefix."""

        def decorator(handler: Handler) -> Handler:
            if prefix:
                self.add_prefix(method, path, handler)
            else:
                self.add(method, path, handler)
            return handler

        return decorator

    @staticmethod
    def _register(
        table: dict[str, dict[str, Handler]], method: str, path: str, handler: Handler
    ) -> None:
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported HTTP method {method}")
        if not path.startswith("/"):
            raise ValueError(f"Route path must start with '/': {path!r}")
        if path == HEALTHZ_PATH:
            raise ValueError(f"{HEALTHZ_PATH} is reserved")
        handlers = table.setdefault(path, {})
        if method in handlers:
            raise ValueError(f"Route already registered: {method} {path}")
        handlers[method] = handler

    def resolve(self, method: str, path: str) -> tuple[Optional[Handler], set[str]]:
        """Return the matching handler and the methods registered for the path."""
        allowed: set[str] = set()
        exact = self._exact.get(path)
        if exact is not None:
            if method in exact:
                return exact[method], set(exact)
            allowed.update(exact)

        matching = [prefix for prefix in self._prefixes if path.startswith(prefix)]
        for prefix in sorted(matching, key=len, reverse=True):
            handlers = self._prefixes[prefix]
            if method in handlers:
                return handlers[method], set(handlers)
            allowed.update(handlers)
        return None, allowed


def route_request(
    request: HttpRequest,
    routes: RouteTable,
    application_context: Any,
    draining: bool = False,
) -> HttpResponse:
    """Route the request to the appropriate handler and return a response."""
    if request.path == HEALTHZ_PATH:
        return handle_healthz(draining)

    handler, allowed = routes.resolve(request.method, request.path)
    if handler is None:
        if allowed:
            ROUTER_LOGGER.info(
                "Method not allowed for route",
                extra={
                    "event": "route_method_not_allowed",
                    "route": request.path,
                    "method": request.method,
                },
            )
            return method_not_allowed_response(request, allowed)
        ROUTER_LOGGER.info(
            "No matching route found",
            extra={
                "event": "route_not_found",
                "route": request.path,
                "method": request.method,
            },
        )
        return not_found_response(request)

    if ROUTER_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ROUTER_LOGGER.debug(
            "Route matched", extra={"event": "route_matched", "route": request.path}
        )
    try:
        return handler(request, application_context)
    except Exception as error:  # pylint: disable=broad-except
        ROUTER_LOGGER.error(
            "Route handler failed",
            extra={
                "event": "handler_error",
                "route": request.path,
                "method": request.method,
                "error_type": type(error).__name__,
            },
            exc_info=True,
        )
        return internal_error_response()
