"""Monitor storage: one port, three swappable backends.

``MonitorStore`` is the interface the scheduler and API talk to. Backends:

- ``InMemoryStore``  dict keyed by monitor id (tests, ephemeral runs)
- ``JsonFileStore``  whole document in a single JSON file
- ``SQLiteStore``    one row per monitor, history as a JSON column

Every backend hands out copies, so mutating a returned Monitor never changes
stored state until it is passed back through ``upsert``.
"""

from __future__ import annotations

import abc
import copy
import json
import logging
import os
import sqlite3
import tempfile
import threading
from pathlib import Path
from typing import Any

from sentinel.monitors.models import DEFAULT_INTERVAL, GlobalSettings, Monitor

logger = logging.getLogger(__name__)

BACKENDS = ("memory", "json", "sqlite")


class StoreError(Exception):
    """Raised when the underlying storage fails."""


class MonitorStore(abc.ABC):
    """Storage port for monitors and the global settings record."""

    @abc.abstractmethod
    def list(self) -> list[Monitor]:
        """All monitors, newest first."""

    @abc.abstractmethod
    def get(self, monitor_id: str) -> Monitor | None: ...

    @abc.abstractmethod
    def upsert(self, monitor: Monitor) -> Monitor: ...

    @abc.abstractmethod
    def delete(self, monitor_id: str) -> bool: ...

    @abc.abstractmethod
    def get_settings(self) -> GlobalSettings: ...

    @abc.abstractmethod
    def set_settings(self, settings: GlobalSettings) -> GlobalSettings: ...

    def add_many(self, monitors: list[Monitor]) -> list[Monitor]:
        return [self.upsert(m) for m in monitors]

    def close(self) -> None:
        pass


def _sorted(monitors: list[Monitor]) -> list[Monitor]:
    return sorted(monitors, key=lambda m: m.created_at, reverse=True)


# ── In-memory ────────────────────────────────────────────────────────────────


class InMemoryStore(MonitorStore):
    def __init__(self, default_interval: int = DEFAULT_INTERVAL) -> None:
        self._monitors: dict[str, Monitor] = {}
        self._settings = GlobalSettings(global_interval=default_interval)
        self._lock = threading.Lock()

    def list(self) -> list[Monitor]:
        with self._lock:
            return _sorted([copy.deepcopy(m) for m in self._monitors.values()])

    def get(self, monitor_id: str) -> Monitor | None:
        with self._lock:
            m = self._monitors.get(monitor_id)
            return copy.deepcopy(m) if m else None

    def upsert(self, monitor: Monitor) -> Monitor:
        with self._lock:
            self._monitors[monitor.id] = copy.deepcopy(monitor)
        return monitor

    def delete(self, monitor_id: str) -> bool:
        with self._lock:
            return self._monitors.pop(monitor_id, None) is not None

    def get_settings(self) -> GlobalSettings:
        return copy.copy(self._settings)

    def set_settings(self, settings: GlobalSettings) -> GlobalSettings:
        self._settings = copy.copy(settings)
        return settings


# ── JSON document ────────────────────────────────────────────────────────────


class JsonFileStore(InMemoryStore):
    """In-memory state mirrored to a JSON file after every mutation."""

    def __init__(self, path: Path | str, default_interval: int = DEFAULT_INTERVAL) -> None:
        super().__init__(default_interval)
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            doc = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Failed to read %s, starting empty", self._path)
            return

        try:
            # Older files hold a bare list of monitors
            raw_monitors = doc if isinstance(doc, list) else doc.get("monitors", [])
            self._monitors = {m["id"]: Monitor.from_dict(m) for m in raw_monitors}
        except Exception:
            logger.exception("Failed to load monitors from %s, starting empty", self._path)
            self._monitors = {}
        else:
            logger.info("Loaded %d monitors from %s", len(self._monitors), self._path)

        if isinstance(doc, dict) and doc.get("settings"):
            try:
                self._settings = GlobalSettings.from_dict(doc["settings"])
            except Exception as e:
                logger.warning("Ignoring invalid settings in %s: %s", self._path, e)

    def _save(self) -> None:
        with self._lock:
            doc: dict[str, Any] = {
                "monitors": [m.to_dict() for m in self._monitors.values()],
                "settings": self._settings.to_dict(),
            }
        tmp: str | None = None
        try:
            fd, tmp = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(doc, fh, indent=2)
            os.replace(tmp, self._path)
        except OSError as e:
            raise StoreError(f"Failed to write {self._path}: {e}") from e
        finally:
            if tmp is not None and os.path.exists(tmp):
                os.unlink(tmp)

    def upsert(self, monitor: Monitor) -> Monitor:
        super().upsert(monitor)
        self._save()
        return monitor

    def add_many(self, monitors: list[Monitor]) -> list[Monitor]:
        with self._lock:
            for m in monitors:
                self._monitors[m.id] = copy.deepcopy(m)
        self._save()
        return monitors

    def delete(self, monitor_id: str) -> bool:
        removed = super().delete(monitor_id)
        if removed:
            self._save()
        return removed

    def set_settings(self, settings: GlobalSettings) -> GlobalSettings:
        super().set_settings(settings)
        self._save()
        return settings


# ── SQLite ───────────────────────────────────────────────────────────────────


class SQLiteStore(MonitorStore):
    """SQLite-backed monitor table + single-row settings table."""

    def __init__(self, db_path: Path | str, default_interval: int = DEFAULT_INTERVAL) -> None:
        self._db_path = Path(db_path)
        self._default_interval = default_interval
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def _init_db(self) -> None:
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS monitors (
                id           TEXT PRIMARY KEY,
                url          TEXT NOT NULL,
                name         TEXT NOT NULL,
                status       TEXT NOT NULL DEFAULT 'PENDING',
                status_code  INTEGER,
                last_checked INTEGER,
                latency      INTEGER,
                history      TEXT NOT NULL DEFAULT '[]',
                interval     INTEGER,
                is_paused    INTEGER NOT NULL DEFAULT 0,
                created_at   INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_monitors_created
                ON monitors (created_at DESC);

            CREATE TABLE IF NOT EXISTS settings (
                id              TEXT PRIMARY KEY,
                global_interval INTEGER NOT NULL
            );
        """)
        conn.commit()

    def _query(self, sql: str, params: Any = ()) -> list[sqlite3.Row]:
        try:
            with self._lock:
                return self._get_conn().execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    def _write(self, sql: str, params: Any = ()) -> int:
        try:
            with self._lock:
                conn = self._get_conn()
                cursor = conn.execute(sql, params)
                conn.commit()
                return cursor.rowcount
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Monitor:
        return Monitor.from_dict({
            "id": row["id"],
            "url": row["url"],
            "name": row["name"],
            "status": row["status"],
            "statusCode": row["status_code"],
            "lastChecked": row["last_checked"],
            "latency": row["latency"],
            "history": json.loads(row["history"] or "[]"),
            "interval": row["interval"],
            "isPaused": bool(row["is_paused"]),
            "createdAt": row["created_at"],
        })

    def list(self) -> list[Monitor]:
        rows = self._query("SELECT * FROM monitors ORDER BY created_at DESC")
        return [self._from_row(r) for r in rows]

    def get(self, monitor_id: str) -> Monitor | None:
        rows = self._query("SELECT * FROM monitors WHERE id = ?", (monitor_id,))
        return self._from_row(rows[0]) if rows else None

    def upsert(self, monitor: Monitor) -> Monitor:
        d = monitor.to_dict()
        self._write(
            "INSERT INTO monitors "
            "(id, url, name, status, status_code, last_checked, latency, history, "
            "interval, is_paused, created_at) "
            "VALUES (:id, :url, :name, :status, :statusCode, :lastChecked, :latency, "
            ":history, :interval, :isPaused, :createdAt) "
            "ON CONFLICT(id) DO UPDATE SET "
            "url = excluded.url, name = excluded.name, status = excluded.status, "
            "status_code = excluded.status_code, last_checked = excluded.last_checked, "
            "latency = excluded.latency, history = excluded.history, "
            "interval = excluded.interval, is_paused = excluded.is_paused",
            {**d, "history": json.dumps(d["history"]), "isPaused": int(d["isPaused"])},
        )
        return monitor

    def delete(self, monitor_id: str) -> bool:
        return self._write("DELETE FROM monitors WHERE id = ?", (monitor_id,)) > 0

    def get_settings(self) -> GlobalSettings:
        rows = self._query("SELECT global_interval FROM settings WHERE id = 'global'")
        if not rows:
            return GlobalSettings(global_interval=self._default_interval)
        return GlobalSettings(global_interval=rows[0]["global_interval"])

    def set_settings(self, settings: GlobalSettings) -> GlobalSettings:
        self._write(
            "INSERT INTO settings (id, global_interval) VALUES ('global', ?) "
            "ON CONFLICT(id) DO UPDATE SET global_interval = excluded.global_interval",
            (settings.global_interval,),
        )
        return settings

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None


def create_store(
    backend: str,
    data_dir: Path | str,
    default_interval: int = DEFAULT_INTERVAL,
) -> MonitorStore:
    """Build the configured backend. ``data_dir`` holds file-based stores."""
    data_dir = Path(data_dir)
    if backend == "memory":
        return InMemoryStore(default_interval)
    if backend == "json":
        return JsonFileStore(data_dir / "monitors.json", default_interval)
    if backend == "sqlite":
        return SQLiteStore(data_dir / "monitors.db", default_interval)
    raise ValueError(f"Unknown store backend: {backend}. Must be one of {BACKENDS}")
