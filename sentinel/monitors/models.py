"""Monitor data model: status, latency history, URL normalization.

A Monitor is the unit the scheduler checks and the API exposes. The wire and
persistence form is camelCase (``statusCode``, ``lastChecked``, ``isPaused``)
so the dashboard can consume it unchanged.
"""

from __future__ import annotations

import re
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sentinel.checks.engine import CheckResult

MAX_HISTORY = 30
MIN_INTERVAL = 10  # seconds
DEFAULT_INTERVAL = 3600  # seconds

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


class Status(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    PENDING = "PENDING"
    PAUSED = "PAUSED"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# ── URL helpers ──────────────────────────────────────────────────────────────


def normalize_url(raw: str) -> str:
    """Trim and prefix ``https://`` when the URL carries no http(s) scheme."""
    url = raw.strip()
    if not url:
        raise ValueError("URL must not be empty")
    if not _SCHEME_RE.match(url):
        url = f"https://{url}"
    return url


def derive_name(url: str) -> str:
    """Display name = host part of the URL (everything up to the first '/')."""
    return _SCHEME_RE.sub("", url).split("/")[0]


def parse_url_list(text: str) -> list[str]:
    """Split newline-delimited input into trimmed, non-empty lines."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def validate_interval(interval: int | None) -> int | None:
    if interval is None:
        return None
    if interval < MIN_INTERVAL:
        raise ValueError(f"Invalid interval (must be >= {MIN_INTERVAL} seconds)")
    return int(interval)


# ── Models ───────────────────────────────────────────────────────────────────


@dataclass
class LatencyPoint:
    timestamp: int
    latency: int

    def to_dict(self) -> dict[str, int]:
        return {"timestamp": self.timestamp, "latency": self.latency}


@dataclass
class Monitor:
    """A tracked URL with its latest status and bounded latency history."""

    url: str
    name: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: Status = Status.PENDING
    status_code: int | None = None
    last_checked: int | None = None
    latency: int | None = None
    history: list[LatencyPoint] = field(default_factory=list)
    interval: int | None = None  # None = follow the global setting
    is_paused: bool = False
    created_at: int = field(default_factory=now_ms)

    @classmethod
    def create(cls, raw_url: str, interval: int | None = None) -> "Monitor":
        url = normalize_url(raw_url)
        return cls(url=url, name=derive_name(url), interval=validate_interval(interval))

    # -- Mutations -----------------------------------------------------------

    def record_result(self, result: "CheckResult", at: int | None = None) -> None:
        """Apply a completed check and append to history (FIFO, max 30)."""
        at = at if at is not None else now_ms()
        self.status_code = result.status_code
        self.latency = result.latency_ms
        self.last_checked = at
        self.history.append(LatencyPoint(timestamp=at, latency=result.latency_ms))
        if len(self.history) > MAX_HISTORY:
            del self.history[: len(self.history) - MAX_HISTORY]
        # A pause that landed while the check was in flight wins
        self.status = Status.PAUSED if self.is_paused else result.status

    def toggle_pause(self) -> None:
        self.is_paused = not self.is_paused
        self.status = Status.PAUSED if self.is_paused else Status.PENDING

    def update_url(self, raw_url: str) -> None:
        self.url = normalize_url(raw_url)
        self.name = derive_name(self.url)
        self.mark_pending()

    def mark_pending(self) -> None:
        """Optimistic marker until the next check lands."""
        if not self.is_paused:
            self.status = Status.PENDING

    # -- Serialization -------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "name": self.name,
            "status": self.status.value,
            "statusCode": self.status_code,
            "lastChecked": self.last_checked,
            "latency": self.latency,
            "history": [p.to_dict() for p in self.history],
            "interval": self.interval,
            "isPaused": self.is_paused,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Monitor":
        history = [
            LatencyPoint(timestamp=int(p["timestamp"]), latency=int(p["latency"]))
            for p in data.get("history") or []
        ]
        return cls(
            id=data["id"],
            url=data["url"],
            name=data.get("name") or derive_name(data["url"]),
            status=Status(data.get("status", Status.PENDING.value)),
            status_code=data.get("statusCode"),
            last_checked=data.get("lastChecked"),
            latency=data.get("latency"),
            history=history[-MAX_HISTORY:],
            interval=data.get("interval"),
            is_paused=bool(data.get("isPaused", False)),
            created_at=data.get("createdAt") or 0,
        )


@dataclass
class GlobalSettings:
    """Global settings record."""

    global_interval: int = DEFAULT_INTERVAL

    def __post_init__(self) -> None:
        if self.global_interval < MIN_INTERVAL:
            raise ValueError(f"Invalid interval (must be >= {MIN_INTERVAL} seconds)")

    def to_dict(self) -> dict[str, Any]:
        return {"globalInterval": self.global_interval}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GlobalSettings":
        return cls(global_interval=int(data.get("globalInterval", DEFAULT_INTERVAL)))
