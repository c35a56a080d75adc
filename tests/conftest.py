"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from sentinel.checks.engine import CheckResult
from sentinel.monitors.models import Status
from sentinel.monitors.store import InMemoryStore


class FakeClock:
    """Injectable epoch-ms clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


class FakeExecutor:
    """Async stand-in for execute_check; outcomes keyed by URL."""

    def __init__(self, default: tuple[Status, int] = (Status.UP, 200)) -> None:
        self.default = default
        self.outcomes: dict[str, tuple[Status, int]] = {}
        self.calls: list[str] = []

    async def __call__(self, url: str) -> CheckResult:
        self.calls.append(url)
        status, code = self.outcomes.get(url, self.default)
        return CheckResult(
            status=status,
            status_code=code,
            latency_ms=42 if status == Status.UP else 0,
        )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an AsyncClient whose requests are served by ``handler``."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make
