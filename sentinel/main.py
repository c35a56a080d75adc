"""Entry point for the Sentinel uptime monitor."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from sentinel.checks.engine import execute_check
from sentinel.checks.scheduler import CheckScheduler
from sentinel.config import settings
from sentinel.monitors.models import Monitor, Status, normalize_url
from sentinel.monitors.seed import seed_store
from sentinel.monitors.store import create_store
from sentinel.notifications import NotificationManager

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)

_STYLE = {
    Status.UP: "bold green",
    Status.DOWN: "bold red",
    Status.PENDING: "dim",
    Status.PAUSED: "yellow",
}


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting Sentinel API Server", style="bold green"))
    uvicorn.run(
        "sentinel.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


async def _probe(urls: list[str]) -> None:
    table = Table(title="Sentinel check")
    table.add_column("URL")
    table.add_column("Status")
    table.add_column("Code", justify="right")
    table.add_column("Latency", justify="right")
    table.add_column("Detail")

    normalized = [normalize_url(u) for u in urls]
    results = await asyncio.gather(
        *(execute_check(u, timeout=settings.check_timeout) for u in normalized)
    )
    for url, r in zip(normalized, results):
        table.add_row(
            url,
            f"[{_STYLE[r.status]}]{r.status.value}[/]",
            str(r.status_code),
            f"{r.latency_ms}ms",
            r.message,
        )
    console.print(table)
    up = sum(1 for r in results if r.is_up)
    console.print(f"[bold]{up}/{len(results)} up[/bold]")


def _print_monitors(monitors: list[Monitor]) -> None:
    table = Table(title="Monitors")
    for col in ("Name", "Status", "Code", "Latency", "Last checked"):
        table.add_column(col)
    for m in monitors:
        checked = (
            datetime.fromtimestamp(m.last_checked / 1000).strftime("%Y-%m-%d %H:%M:%S")
            if m.last_checked else "never"
        )
        table.add_row(
            m.name,
            f"[{_STYLE[m.status]}]{m.status.value}[/]",
            "" if m.status_code is None else str(m.status_code),
            "" if m.latency is None else f"{m.latency}ms",
            checked,
        )
    console.print(table)


async def _tick() -> None:
    store = create_store(settings.store_backend, settings.data_dir, settings.default_interval)
    seed_store(store, settings.seed_file)
    notifier = NotificationManager()
    scheduler = CheckScheduler(
        store,
        notifier=notifier,
        max_concurrency=settings.max_concurrency,
        timeout=settings.check_timeout,
    )
    try:
        with console.status("[bold green]Checking due monitors..."):
            checked = await scheduler.run_once()
        console.print(f"[dim]Checked {len(checked)} monitor(s)[/dim]")
        _print_monitors(store.list())
    finally:
        await scheduler.drain()
        await scheduler.stop()
        await notifier.close()
        store.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Sentinel uptime monitor")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server and background scheduler")

    check_parser = sub.add_parser("check", help="Probe URLs once and print the result")
    check_parser.add_argument("urls", nargs="+", help="URLs (scheme optional)")

    sub.add_parser("tick", help="Run one scheduler pass against the configured store")

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "check":
        asyncio.run(_probe(args.urls))
    elif args.command == "tick":
        asyncio.run(_tick())
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
