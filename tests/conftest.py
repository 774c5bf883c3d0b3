# tests/conftest.py
from __future__ import annotations

import sys
from pathlib import Path
from datetime import date
from typing import Any

# Make the `balikbayani` package importable without installing it.
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import httpx
import pytest

from balikbayani.api import PortalApiClient

BASE_URL = 'http://portal.test/api'
TODAY = date(2025, 3, 10)


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str, str]] = []

    def notify(self, kind: str, title: str, detail: str = '') -> None:
        self.messages.append((kind, title, detail))

    def kinds(self) -> list[str]:
        return [kind for kind, _, _ in self.messages]

    def titles(self) -> list[str]:
        return [title for _, title, _ in self.messages]


class RecordingRedirector:
    def __init__(self) -> None:
        self.redirects: list[tuple[str, int]] = []

    def redirect(self, url: str, delay_ms: int = 0) -> None:
        self.redirects.append((url, delay_ms))


class FakeBackend:
    """
    Answers API calls from a route table through httpx.MockTransport.
    A route is either a callable taking the request or a (status, json) tuple.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, response: Any) -> None:
        self.routes[(method, f'/api{path}')] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={'success': False, 'error': 'Not found'})
        if callable(route):
            return route(request)
        status, body = route
        if isinstance(body, bytes):
            return httpx.Response(status, content=body, headers={'content-type': 'application/pdf'})
        return httpx.Response(status, json=body)

    def client(self, token: str | None = 'valid-token') -> PortalApiClient:
        return PortalApiClient(BASE_URL, token=token, transport=httpx.MockTransport(self.handler))

    def paths(self, method: str | None = None) -> list[str]:
        return [r.url.path for r in self.requests if method is None or r.method == method]

    def last(self, method: str, path: str) -> httpx.Request:
        matches = [r for r in self.requests if r.method == method and r.url.path == f'/api{path}']
        assert matches, f"No {method} request to {path} was made"
        return matches[-1]


def raise_connect_error(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


class StubContext:
    """Rule context over a plain dict, for validator tests."""

    def __init__(self, values: dict[str, Any] | None = None, filled: set[str] | None = None,
                 today: date = TODAY) -> None:
        self.values = values or {}
        self.filled = filled or set()
        self.today = today

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def slot_filled(self, slot_key: str) -> bool:
        return slot_key in self.filled


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def redirector() -> RecordingRedirector:
    return RecordingRedirector()


@pytest.fixture
def backend() -> FakeBackend:
    backend = FakeBackend()
    backend.on('POST', '/auth/validate', (200, {'success': True}))
    return backend

