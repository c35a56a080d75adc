"""Seed file loader: adds monitors listed in monitors.yaml at startup.

Format::

    monitors:
      - example.com
      - url: https://status.example.org/health
        interval: 30

Entries whose normalized URL already exists in the store are skipped, so the
file can stay in place across restarts.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from sentinel.monitors.models import Monitor, normalize_url
from sentinel.monitors.store import MonitorStore

logger = logging.getLogger(__name__)


def _parse_entry(raw: Any) -> tuple[str, int | None] | None:
    if isinstance(raw, str):
        return raw, None
    if isinstance(raw, dict) and raw.get("url"):
        interval = raw.get("interval")
        return str(raw["url"]), int(interval) if interval is not None else None
    logger.warning("Skipping malformed seed entry: %r", raw)
    return None


def load_seed(path: Path) -> list[tuple[str, int | None]]:
    """Parse the seed file into (url, interval) pairs."""
    if not path.exists():
        logger.debug("Seed file not found: %s", path)
        return []

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    entries = data.get("monitors", []) if isinstance(data, dict) else []
    parsed = [_parse_entry(e) for e in entries]
    return [p for p in parsed if p is not None]


def seed_store(store: MonitorStore, path: Path) -> list[Monitor]:
    """Add seed monitors that are not already tracked. Returns the new ones."""
    try:
        entries = load_seed(path)
    except (OSError, yaml.YAMLError):
        logger.exception("Failed to read seed file %s", path)
        return []
    if not entries:
        return []

    existing = {m.url for m in store.list()}
    added: list[Monitor] = []
    for url, interval in entries:
        try:
            if normalize_url(url) in existing:
                continue
            monitor = Monitor.create(url, interval)
        except ValueError as e:
            logger.warning("Skipping seed entry %r: %s", url, e)
            continue
        existing.add(monitor.url)
        added.append(monitor)

    if added:
        store.add_many(added)
        logger.info("Seeded %d monitors from %s", len(added), path)
    return added
