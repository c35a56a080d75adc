"""Check executor: one HTTP HEAD probe per call.

Outcomes are always encoded as a CheckResult, never raised:

- 200-399 response          -> UP   with the real status code
- any other response        -> DOWN with the real status code
- network error / timeout   -> DOWN with status code 0 and latency 0
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from sentinel.monitors.models import Status

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0  # seconds
USER_AGENT = "Sentinel/1.0"


@dataclass
class CheckResult:
    """Result of a single HEAD probe."""

    status: Status
    status_code: int
    latency_ms: int
    message: str = ""
    timestamp: str = ""

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()

    @property
    def is_up(self) -> bool:
        return self.status == Status.UP


def classify(status_code: int) -> Status:
    return Status.UP if 200 <= status_code < 400 else Status.DOWN


async def _head(url: str, client: httpx.AsyncClient | None, timeout: float) -> httpx.Response:
    if client is None:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as c:
            return await c.head(url, headers={"User-Agent": USER_AGENT})
    return await client.head(url, headers={"User-Agent": USER_AGENT}, timeout=timeout)


async def execute_check(
    url: str,
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> CheckResult:
    """HEAD ``url`` and classify the response. Only cancellation propagates.

    ``timeout`` bounds the whole request, redirects included. httpx applies its
    own timeout per connect/read/write phase only.
    """
    t0 = time.perf_counter()
    try:
        resp = await asyncio.wait_for(_head(url, client, timeout), timeout)
        latency = round((time.perf_counter() - t0) * 1000)
        status = classify(resp.status_code)
        msg = f"{resp.status_code} {resp.reason_phrase}".strip()
        return CheckResult(
            status=status, status_code=resp.status_code, latency_ms=latency, message=msg,
        )
    except asyncio.CancelledError:
        raise
    except (httpx.TimeoutException, asyncio.TimeoutError):
        return CheckResult(
            status=Status.DOWN, status_code=0, latency_ms=0,
            message=f"Timed out after {timeout:g}s",
        )
    except httpx.HTTPError as e:
        return CheckResult(
            status=Status.DOWN, status_code=0, latency_ms=0,
            message=f"Connection error: {e}",
        )
    except Exception as e:
        # Malformed URLs and other client-side failures
        logger.debug("Check of %s failed: %s", url, e)
        return CheckResult(
            status=Status.DOWN, status_code=0, latency_ms=0,
            message=f"Error: {type(e).__name__}: {e}",
        )
