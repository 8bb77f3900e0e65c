"""Unit tests for the route table and dispatch."""

import pytest

from restserver.domain.http_types import HttpRequest
from restserver.domain.response_builders import text_response
from restserver.pipeline.router import RouteTable, route_request


def make_request(path: str, method: str = "GET") -> HttpRequest:
    """Construct a HttpRequest test double with sane defaults."""
    return HttpRequest(method, path, {}, b"")


def named(label: str):
    def handler(request, _context):
        return text_response(label, request)

    return handler


def test_exact_route_wins_over_prefix():
    """An exact match is preferred to a prefix covering the same path."""
    routes = RouteTable()
    routes.add_prefix("GET", "/items/", named("prefix"))
    routes.add("GET", "/items/special", named("exact"))

    response = route_request(make_request("/items/special"), routes, None)

    assert response.body == b"exact"


def test_longest_prefix_wins():
    """Among matching prefixes the longest one handles the request."""
    routes = RouteTable()
    routes.add_prefix("GET", "/a/", named("short"))
    routes.add_prefix("GET", "/a/b/", named("long"))

    assert route_request(make_request("/a/b/c"), routes, None).body == b"long"
    assert route_request(make_request("/a/x"), routes, None).body == b"short"


def test_handler_receives_context():
    """The application context is passed through to the handler."""
    routes = RouteTable()
    seen = []

    @routes.route("GET", "/ctx")
    def handler(request, context):
        seen.append(context)
        return text_response("ok", request)

    route_request(make_request("/ctx"), routes, "the-context")

    assert seen == ["the-context"]


def test_not_found_and_method_not_allowed():
    """Unknown paths give 404; registered paths with other methods give 405."""
    routes = RouteTable()
    routes.add("POST", "/orders", named("create"))
    routes.add("DELETE", "/orders", named("purge"))

    missing = route_request(make_request("/nothing"), routes, None)
    wrong = route_request(make_request("/orders"), routes, None)

    assert missing.status_line == "HTTP/1.1 404 Not Found"
    assert wrong.status_line == "HTTP/1.1 405 Method Not Allowed"
    assert wrong.headers["Allow"] == "DELETE, POST"


def test_healthz_reflects_draining():
    """The built-in health check turns 503 while draining."""
    routes = RouteTable()

    serving = route_request(make_request("/healthz"), routes, None)
    draining = route_request(make_request("/healthz"), routes, None, draining=True)

    assert serving.status_code == 200
    assert draining.status_code == 503
    assert draining.body == b"draining"


def test_handler_exception_becomes_500():
    """Handler failures are contained and reported as 500."""
    routes = RouteTable()

    @routes.route("GET", "/fail")
    def failing(_request, _context):
        raise KeyError("missing")

    response = route_request(make_request("/fail"), routes, None)

    assert response.status_code == 500
    assert response.close_connection is True


@pytest.mark.parametrize(
    ("method", "path"),
    [("TRACE", "/x"), ("GET", "relative"), ("GET", "/healthz")],
)
def test_invalid_registrations_are_rejected(method, path):
    """Unsupported methods, relative paths and the reserved health path are refused."""
    with pytest.raises(ValueError):
        RouteTable().add(method, path, named("x"))


def test_duplicate_registration_is_rejected():
    """Registering the same method and path twice is an error."""
    routes = RouteTable()
    routes.add("get", "/dup", named("one"))

    with pytest.raises(ValueError, match="already registered"):
        routes.add("GET", "/dup", named("two"))
