"""Shared test fixtures for keyway.

Provides a controllable clock, a routing ``httpx.MockTransport`` handler
that records every request, isolated config directories, and output
state management.  These fixtures are automatically discovered by pytest
and available to all test modules without explicit imports.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Union

import httpx
import pytest

from keyway.output import OutputManager, reset_output, set_output
from keyway.transport import HttpxTransport

START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

Responder = Union[httpx.Response, Callable[[httpx.Request], Any]]


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class Router:
    """Routes mock requests by ``(method, path)`` and records them.

    A responder is either a fixed :class:`httpx.Response` or a callable
    (sync or async) taking the request.  Unrouted requests get a 404.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Responder] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, responder: Responder) -> None:
        self.routes[(method.upper(), path)] = responder

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests if r.method == method.upper() and r.url.path == path
        ]

    def transport(self) -> HttpxTransport:
        return HttpxTransport(transport=httpx.MockTransport(self))

    def __call__(self, request: httpx.Request) -> Any:
        self.requests.append(request)
        responder = self.routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"errors": []})
        if isinstance(responder, httpx.Response):
            return httpx.Response(
                responder.status_code, headers=responder.headers, content=responder.content
            )
        return responder(request)


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _quiet_output_between_tests() -> None:
    """Install a quiet, colourless OutputManager and reset it afterwards."""
    set_output(OutputManager(no_color=True, quiet=True))
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Pipeline fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    """A fake clock starting at a fixed UTC instant."""
    return FakeClock()


@pytest.fixture
def router() -> Router:
    """A recording request router to back an ``httpx.MockTransport``."""
    return Router()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Forces XDG path resolution with ``XDG_CONFIG_HOME`` under *tmp_path*
    and clears all ``KEYWAY_*`` environment variables.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("keyway.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    for var in ["KEYWAY_BASE_URL", "KEYWAY_VERIFY_SSL", "KEYWAY_DEBUG"]:
        monkeypatch.delenv(var, raising=False)
    return tmp_path
