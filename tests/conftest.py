"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path
from typing import Generator, TypedDict

import pytest

from tests.utils.http import reserve_port, wait_for_port

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"
HOST = "127.0.0.1"


class ServerProcessInfo(TypedDict):
    """Metadata describing a running server fixture instance."""

    base_url: str
    host: str
    port: int
    process: subprocess.Popen[str]
    log_file: Path


def server_env(log_file: Path) -> dict[str, str]:
    """Environment for the example service: local host, file logging, short grace."""

    env = dict(os.environ)
    env.update(
        {
            "REST_SERVER_HOST": HOST,
            "REST_SERVER_LOG_DESTINATION": str(log_file),
            "REST_SERVER_LOG_LEVEL": "DEBUG",
            "REST_SERVER_SHUTDOWN_GRACE_SECONDS": "1",
        }
    )
    return env


def run_server_command(
    args: list[str], log_file: Path, timeout: float = 10.0
) -> subprocess.CompletedProcess[str]:
    """Run the example service to completion and capture its output."""

    return subprocess.run(
        [sys.executable, str(SERVER_ENTRYPOINT), *args],
        cwd=PROJECT_ROOT,
        env=server_env(log_file),
        capture_output=True,
        text=True,
        timeout=timeout,
        check=False,
    )


def read_log_events(log_file: Path) -> list[dict]:
    """Parse the JSON log file written by the service."""

    return [
        json.loads(line)
        for line in log_file.read_text().splitlines()
        if line.strip()
    ]


def _launch_server(
    port: int, log_file: Path, config_file: Path | None = None
) -> Generator[ServerProcessInfo, None, None]:
    args = [sys.executable, str(SERVER_ENTRYPOINT), str(port)]
    if config_file is not None:
        args.append(str(config_file))

    with subprocess.Popen(
        args,
        cwd=PROJECT_ROOT,
        env=server_env(log_file),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    ) as process:
        try:
            wait_for_port(HOST, port)
        except Exception:
            process.terminate()
            stdout, stderr = process.communicate(timeout=5)
            print(f"\nServer stdout:\n{stdout}")
            print(f"\nServer stderr:\n{stderr}")
            raise

        yield {
            "base_url": f"http://{HOST}:{port}",
            "host": HOST,
            "port": port,
            "process": process,
            "log_file": log_file,
        }

        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                process.kill()


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture(name="config_file")
def _config_file(tmp_path: Path) -> Path:
    """A valid JSON config document for the example service."""

    path = tmp_path / "service.json"
    path.write_text(json.dumps({"greeting": "Howdy"}))
    return path


@pytest.fixture(name="server_process")
def _server_process(
    tmp_path: Path, config_file: Path
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the example service in a background process for integration tests."""

    port = reserve_port(HOST)
    yield from _launch_server(port, tmp_path / "server.log", config_file)


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    """Expose the running server base URL to integration tests."""

    return server_process["base_url"]
