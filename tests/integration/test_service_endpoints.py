"""Integration tests for the example service's HTTP endpoints."""

import time

import pytest
import requests

from tests.conftest import read_log_events
from tests.utils.http import send_raw_request

pytestmark = pytest.mark.integration


def test_root_serves_configured_greeting(base_url):
    """The greeting comes from the JSON config file given on the command line."""
    first = requests.get(f"{base_url}/", timeout=5)
    second = requests.get(f"{base_url}/", timeout=5)

    assert first.status_code == 200
    assert first.json() == {"greeting": "Howdy", "hits": 1}
    assert second.json()["hits"] == 2


def test_echo_prefix_route(base_url):
    response = requests.get(f"{base_url}/echo/hello%20there", timeout=5)

    assert response.status_code == 200
    assert response.text == "hello there"
    assert response.headers["Content-Type"] == "text/plain; charset=utf-8"


def test_echo_post_body(base_url):
    response = requests.post(f"{base_url}/echo", data="ping", timeout=5)

    assert response.status_code == 200
    assert response.text == "ping"


def test_context_accessor_returns_installed_context(base_url):
    """Handlers see the same context through the process-wide accessor."""
    response = requests.get(f"{base_url}/context", timeout=5)

    assert response.json() == {"installed": True, "type": "GreetingContext"}


def test_unknown_route_and_method(base_url):
    assert requests.get(f"{base_url}/missing", timeout=5).status_code == 404

    wrong_method = requests.delete(f"{base_url}/context", timeout=5)
    assert wrong_method.status_code == 405
    assert wrong_method.headers["Allow"] == "GET"


def test_request_id_round_trip_and_logging(server_process):
    """The client's X-Request-ID is echoed and tags the request log entry."""
    response = requests.get(
        f"{server_process['base_url']}/",
        headers={"X-Request-ID": "integration-req-1"},
        timeout=5,
    )

    assert response.headers["X-Request-ID"] == "integration-req-1"

    def logged() -> bool:
        return any(
            entry.get("event") == "request_complete"
            and entry["correlation_id"] == "integration-req-1"
            and entry["status_code"] == 200
            for entry in read_log_events(server_process["log_file"])
        )

    deadline = time.perf_counter() + 2.0
    while not logged() and time.perf_counter() < deadline:
        time.sleep(0.05)
    assert logged()


def test_keep_alive_serves_multiple_requests(server_process):
    """Sequential requests on one persistent connection are both answered."""
    session = requests.Session()
    try:
        first = session.get(f"{server_process['base_url']}/healthz", timeout=5)
        second = session.get(f"{server_process['base_url']}/", timeout=5)
    finally:
        session.close()

    assert first.status_code == 200
    assert second.status_code == 200


def test_traversal_attempt_is_forbidden(server_process):
    response = send_raw_request(
        server_process["host"],
        server_process["port"],
        b"GET /echo/../etc/passwd HTTP/1.1\r\nHost: localhost\r\n\r\n",
    )

    assert response.status_code == 403
