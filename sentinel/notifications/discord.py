"""Discord webhook channel for transition alerts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from sentinel.monitors.models import Status

if TYPE_CHECKING:
    from sentinel.monitors.models import Monitor

logger = logging.getLogger(__name__)


class DiscordNotifier:
    """Sends alerts via a Discord webhook. Disabled when no URL is set."""

    def __init__(self, webhook_url: str = "") -> None:
        self.webhook_url = webhook_url
        self._client: httpx.AsyncClient | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def send_message(self, text: str) -> bool:
        if not self.enabled:
            logger.debug("Discord: skipping send (not configured)")
            return False

        if self._client is None:
            self._client = httpx.AsyncClient(timeout=10)
        try:
            resp = await self._client.post(self.webhook_url, json={"content": text})
            if resp.status_code in (200, 204):
                return True
            logger.warning("Discord send failed: %d %s", resp.status_code, resp.text[:200])
            return False
        except Exception as exc:
            logger.warning("Discord send error: %s", exc)
            return False

    async def notify_transition(self, monitor: Monitor, new_status: Status) -> bool:
        if new_status == Status.DOWN:
            text = (
                f"🚨 **{monitor.name} is DOWN**\n"
                f"URL: {monitor.url}\n"
                f"Status code: `{monitor.status_code or 'network error'}`"
            )
        else:
            text = f"✅ **{monitor.name} is back UP** ({monitor.latency}ms)\nURL: {monitor.url}"
        return await self.send_message(text)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
