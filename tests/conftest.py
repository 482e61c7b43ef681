"""Shared fixtures: a fake clock and a recording fake HTTP API."""

from __future__ import annotations

import os
import sys
from typing import Any, Callable, Dict, List, Tuple

import httpx
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from hosting_bridge.backends import HostingManager
from hosting_bridge.cache import MemoryCache
from hosting_bridge.config import default_config
from hosting_bridge.rate_limiter import MemoryRateLimiter

API_URL = "https://api.test"


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeApi:
    """Routes (method, path) to canned JSON responses and records every request."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Any] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, json: Any = None, status: int = 200,
            headers: Dict[str, str] | None = None) -> None:
        self.routes[(method.upper(), path)] = (status, json, headers or {})

    def add_handler(self, method: str, path: str,
                    handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[(method.upper(), path)] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if callable(route):
            return route(request)
        status, body, headers = route
        if body is None:
            return httpx.Response(status, headers=headers)
        return httpx.Response(status, json=body, headers=headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method.upper() and r.url.path == path)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def api():
    return FakeApi()


@pytest.fixture
def make_manager(api, clock):
    """Build a HostingManager wired to the fake API and fake clock."""
    managers = []

    def _make(**overrides: Any) -> HostingManager:
        config = default_config()
        for name in ("forge", "ploi"):
            config["providers"][name]["api_token"] = f"{name}-token"
            config["providers"][name]["api_url"] = API_URL
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(config.get(key), dict):
                config[key].update(value)
            else:
                config[key] = value
        manager = HostingManager(
            config,
            cache=MemoryCache(clock=clock),
            rate_limiter=MemoryRateLimiter(),
            http_transport=api.transport,
        )
        managers.append(manager)
        return manager

    yield _make

    for manager in managers:
        manager.close()
