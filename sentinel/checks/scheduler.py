"""Check scheduler: picks due monitors, bounds concurrency, persists results.

A single asyncio loop ticks every ``tick_seconds``. Each tick scans the store,
selects monitors that are due and not already in flight, and starts one task
per monitor. Tasks share a semaphore so at most ``max_concurrency`` HEAD
requests are outstanding at once. A monitor id maps to at most one in-flight
task; manual checks join that task instead of starting a second probe.

Results are applied to a fresh copy of the monitor read after the probe, so a
delete or URL edit that raced with the check wins over the stale result.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from sentinel.monitors.models import Monitor, Status, now_ms
from sentinel.monitors.store import MonitorStore
from sentinel.notifications import NotificationManager
from .engine import DEFAULT_TIMEOUT, CheckResult, classify, execute_check

logger = logging.getLogger(__name__)

Executor = Callable[[str], Awaitable[CheckResult]]


def effective_interval(monitor: Monitor, global_interval: int) -> int:
    """Per-monitor interval when set, otherwise the global setting (seconds)."""
    return monitor.interval or global_interval


def is_due(monitor: Monitor, now: int, global_interval: int) -> bool:
    """Whether ``monitor`` should be checked at ``now`` (epoch ms)."""
    if monitor.is_paused:
        return False
    if monitor.status == Status.PENDING or monitor.last_checked is None:
        return True
    return now - monitor.last_checked >= effective_interval(monitor, global_interval) * 1000


def last_outcome(monitor: Monitor) -> Status | None:
    """UP/DOWN of the last recorded check, ignoring PENDING/PAUSED markers."""
    if monitor.status in (Status.UP, Status.DOWN):
        return monitor.status
    if monitor.last_checked is None or monitor.status_code is None:
        return None
    return classify(monitor.status_code)


class CheckScheduler:
    """Polling scheduler with at-most-one in-flight check per monitor."""

    def __init__(
        self,
        store: MonitorStore,
        executor: Executor | None = None,
        notifier: NotificationManager | None = None,
        clock: Callable[[], int] = now_ms,
        tick_seconds: float = 5.0,
        max_concurrency: int = 5,
        timeout: float = DEFAULT_TIMEOUT,
        on_result: Callable[[Monitor, CheckResult], Any] | None = None,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.clock = clock
        self.tick_seconds = tick_seconds
        self.max_concurrency = max_concurrency
        self.timeout = timeout
        self.on_result = on_result  # SSE broadcast callback
        self._executor = executor or self._http_check
        self._client: httpx.AsyncClient | None = None
        self._semaphore: asyncio.Semaphore | None = None
        self._inflight: dict[str, asyncio.Task[Monitor | None]] = {}
        self._background: set[asyncio.Task[Any]] = set()
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self.ticks = 0

    # -- Lifecycle ---------------------------------------------------------

    async def start(self) -> None:
        """Start the background tick loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="check-scheduler")
        logger.info(
            "Check scheduler started (tick=%ss, concurrency=%d)",
            self.tick_seconds, self.max_concurrency,
        )

    async def stop(self) -> None:
        """Stop ticking and cancel outstanding checks and notifications."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        pending = [*self._inflight.values(), *self._background]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._inflight.clear()
        self._background.clear()

        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("Check scheduler stopped")

    async def drain(self) -> None:
        """Wait for queued transition notifications to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._inflight)

    def status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "in_flight": len(self._inflight),
            "ticks": self.ticks,
            "tick_seconds": self.tick_seconds,
            "max_concurrency": self.max_concurrency,
        }

    async def _loop(self) -> None:
        while self._running:
            try:
                self.tick()
            except Exception:
                logger.exception("Scheduler tick failed")
            await asyncio.sleep(self.tick_seconds)

    # -- Selection ---------------------------------------------------------

    def due_monitors(self, now: int | None = None) -> list[Monitor]:
        """Monitors due at ``now`` that are not already being checked."""
        now = now if now is not None else self.clock()
        global_interval = self.store.get_settings().global_interval
        return [
            m for m in self.store.list()
            if m.id not in self._inflight and is_due(m, now, global_interval)
        ]

    def tick(self) -> list[str]:
        """One scan: start a check for every due monitor. Returns started ids."""
        self.ticks += 1
        started = []
        for monitor in self.due_monitors():
            self._launch(monitor.id)
            started.append(monitor.id)
        if started:
            logger.debug("Tick %d: started %d checks", self.ticks, len(started))
        return started

    async def run_once(self) -> list[Monitor]:
        """Tick, then wait for the checks that tick started."""
        ids = self.tick()
        return await self._join(ids)

    # -- Manual triggers ---------------------------------------------------

    async def check_now(self, monitor_id: str) -> Monitor | None:
        """Check one monitor now, joining its in-flight check if any."""
        if monitor_id not in self._inflight:
            monitor = self.store.get(monitor_id)
            if monitor is None:
                return None
            monitor.mark_pending()
            self.store.upsert(monitor)
        results = await self._join([monitor_id])
        return results[0] if results else self.store.get(monitor_id)

    async def check_all(self) -> dict[str, int]:
        """Check every non-paused monitor now."""
        active = [m for m in self.store.list() if not m.is_paused]
        for monitor in active:
            if monitor.id not in self._inflight:
                monitor.mark_pending()
                self.store.upsert(monitor)
        results = await self._join([m.id for m in active])
        return {"checked": len(results), "total": len(active)}

    # -- Execution ---------------------------------------------------------

    def _launch(self, monitor_id: str) -> asyncio.Task[Monitor | None]:
        task = self._inflight.get(monitor_id)
        if task is not None:
            return task
        task = asyncio.create_task(self._run_check(monitor_id), name=f"check-{monitor_id}")
        self._inflight[monitor_id] = task
        task.add_done_callback(lambda t, mid=monitor_id: self._release(mid, t))
        return task

    def _release(self, monitor_id: str, task: asyncio.Task[Any]) -> None:
        if self._inflight.get(monitor_id) is task:
            del self._inflight[monitor_id]

    async def _join(self, monitor_ids: list[str]) -> list[Monitor]:
        tasks = [self._launch(mid) for mid in monitor_ids]
        if not tasks:
            return []
        # Shield so a cancelled caller (e.g. a dropped HTTP request) leaves
        # the shared check running for the scheduler and other joiners.
        results = await asyncio.gather(
            *(asyncio.shield(t) for t in tasks), return_exceptions=True,
        )
        return [r for r in results if isinstance(r, Monitor)]

    def _get_semaphore(self) -> asyncio.Semaphore:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
        return self._semaphore

    async def _http_check(self, url: str) -> CheckResult:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return await execute_check(url, client=self._client, timeout=self.timeout)

    async def _run_check(self, monitor_id: str) -> Monitor | None:
        try:
            async with self._get_semaphore():
                monitor = self.store.get(monitor_id)
                if monitor is None:
                    return None
                url = monitor.url
                try:
                    result = await self._executor(url)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.exception("Executor failed for %s", url)
                    result = CheckResult(
                        status=Status.DOWN, status_code=0, latency_ms=0,
                        message=f"Error: {type(e).__name__}: {e}",
                    )
            return self._apply(monitor_id, url, result)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Check failed for monitor %s", monitor_id)
            return None

    def _apply(self, monitor_id: str, url: str, result: CheckResult) -> Monitor | None:
        """Persist ``result`` onto the current stored copy of the monitor."""
        current = self.store.get(monitor_id)
        if current is None:
            logger.debug("Monitor %s deleted during check, result dropped", monitor_id)
            return None
        if current.url != url:
            logger.debug("Monitor %s URL changed during check, result dropped", monitor_id)
            return current

        previous = last_outcome(current)
        current.record_result(result, at=self.clock())
        self.store.upsert(current)

        logger.debug(
            "Check %s: %s %d (%dms)",
            current.name, result.status.value, result.status_code, result.latency_ms,
        )

        if previous is not None and self.notifier is not None:
            self._notify(current, previous, result.status)

        if self.on_result:
            try:
                self.on_result(current, result)
            except Exception:
                logger.exception("SSE callback error")
        return current

    def _notify(self, monitor: Monitor, old: Status, new: Status) -> None:
        if old == new:
            return
        task = asyncio.create_task(self.notifier.notify_transition(monitor, old, new))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
