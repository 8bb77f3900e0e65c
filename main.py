"""Example REST service built on RestServer.

Run with ``python main.py <port> [<config-file>]``. The config file is a JSON
object; the ``greeting`` key sets the text served at ``/``.
"""

import logging
import threading
from typing import Any, Mapping

from restserver.domain.http_types import HttpRequest, HttpResponse
from restserver.domain.request_context import CorrelationLoggerAdapter
from restserver.domain.response_builders import json_response, text_response
from restserver.lifecycle.context import get_application_context
from restserver.lifecycle.manager import RestServer, launch
from restserver.pipeline.router import RouteTable

APP_LOGGER = CorrelationLoggerAdapter(logging.getLogger("rest_server.app"), {})

DEFAULT_GREETING = "Hello"


class GreetingContext:
    """Application-scoped state: the configured greeting and a hit counter."""

    def __init__(self, greeting: str) -> None:
        self.greeting = greeting
        self._lock = threading.Lock()
        self._hits = 0
        self.closed = False

    def record_hit(self) -> int:
        with self._lock:
            self._hits += 1
            return self._hits

    def close(self) -> None:
        self.closed = True
        APP_LOGGER.info(
            "Greeting context closed", extra={"event": "app_context_closed"}
        )


def create_context(document: Mapping[str, Any]) -> GreetingContext:
    greeting = document.get("greeting", DEFAULT_GREETING)
    if not isinstance(greeting, str):
        raise TypeError("config key 'greeting' must be a string")
    return GreetingContext(greeting)


ROUTES = RouteTable()


@ROUTES.route("GET", "/")
def greet(request: HttpRequest, context: GreetingContext) -> HttpResponse:
    return json_response(
        {"greeting": context.greeting, "hits": context.record_hit()}, request
    )


@ROUTES.route("GET", "/echo/", prefix=True)
def echo(request: HttpRequest, _context: GreetingContext) -> HttpResponse:
    return text_response(request.path[len("/echo/") :], request)


@ROUTES.route("POST", "/echo")
def echo_body(request: HttpRequest, _context: GreetingContext) -> HttpResponse:
    return text_response(request.body.decode(errors="replace"), request)


@ROUTES.route("GET", "/context")
def describe_context(request: HttpRequest, context: GreetingContext) -> HttpResponse:
    # Handlers can also reach the process-wide context through the accessor.
    installed = get_application_context()
    return json_response(
        {"installed": installed is context, "type": type(installed).__name__},
        request,
    )


SERVER = RestServer(create_context, ROUTES, program_name="main.py")


if __name__ == "__main__":
    launch(SERVER)
