"""Transition alerts: log line plus optional Slack / Discord / Telegram webhooks.

Only UP -> DOWN and DOWN -> UP transitions notify. Every configured channel is
attempted concurrently; delivery failures are logged and swallowed so a slow
or broken webhook never reaches the scheduler.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import httpx

from sentinel.config import settings
from sentinel.monitors.models import Status

from .discord import DiscordNotifier

if TYPE_CHECKING:
    from sentinel.monitors.models import Monitor

logger = logging.getLogger(__name__)

_EMOJI = {Status.DOWN: "🔴", Status.UP: "🟢"}
_COLOR = {Status.DOWN: "#ff0000", Status.UP: "#00ff00"}
_VERB = {Status.DOWN: "is DOWN", Status.UP: "is back UP"}


def is_notifiable(old_status: Status, new_status: Status) -> bool:
    return (old_status, new_status) in ((Status.UP, Status.DOWN), (Status.DOWN, Status.UP))


def slack_payload(monitor: Monitor, new_status: Status) -> dict[str, Any]:
    """Slack Block Kit message for a status transition."""
    emoji, verb = _EMOJI[new_status], _VERB[new_status]
    when = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    return {
        "text": f"{emoji} Monitor Alert: {monitor.name} {verb}",
        "blocks": [
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"{emoji} *{monitor.name}* {verb}"},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*URL:*\n{monitor.url}"},
                    {"type": "mrkdwn", "text": f"*Status Code:*\n{monitor.status_code or 'N/A'}"},
                    {"type": "mrkdwn", "text": f"*Latency:*\n{monitor.latency or 0}ms"},
                    {"type": "mrkdwn", "text": f"*Time:*\n{when}"},
                ],
            },
        ],
        "attachments": [{"color": _COLOR[new_status], "footer": "Sentinel Uptime Monitor"}],
    }


class NotificationManager:
    """Central dispatcher for transition alerts."""

    def __init__(
        self,
        slack_webhook: str = "",
        discord_webhook: str = "",
        telegram_token: str = "",
        telegram_chat_id: str = "",
    ) -> None:
        self.slack_webhook = slack_webhook or settings.slack_webhook_url
        self.telegram_token = telegram_token or settings.telegram_bot_token
        self.telegram_chat_id = telegram_chat_id or settings.telegram_chat_id
        self.discord = DiscordNotifier(discord_webhook or settings.discord_webhook_url)

    @property
    def has_webhooks(self) -> bool:
        return bool(
            self.slack_webhook
            or self.discord.enabled
            or (self.telegram_token and self.telegram_chat_id)
        )

    def status(self) -> dict[str, Any]:
        return {
            "slack_configured": bool(self.slack_webhook),
            "discord_configured": self.discord.enabled,
            "telegram_configured": bool(self.telegram_token and self.telegram_chat_id),
        }

    async def notify_transition(
        self,
        monitor: Monitor,
        old_status: Status,
        new_status: Status,
    ) -> bool:
        """Alert on UP -> DOWN / DOWN -> UP. Returns False when not notifiable."""
        if not is_notifiable(old_status, new_status):
            return False

        if new_status == Status.DOWN:
            logger.warning(
                "[ALERT] %s %s %s is DOWN (status %s)",
                _EMOJI[new_status], monitor.name, monitor.url, monitor.status_code or "network error",
            )
        else:
            logger.info(
                "[RECOVERY] %s %s %s is back UP (%sms)",
                _EMOJI[new_status], monitor.name, monitor.url, monitor.latency,
            )

        tasks = []
        if self.slack_webhook:
            tasks.append(self._send_slack(slack_payload(monitor, new_status)))
        if self.discord.enabled:
            tasks.append(self.discord.notify_transition(monitor, new_status))
        if self.telegram_token and self.telegram_chat_id:
            tasks.append(self._send_telegram(
                f"{_EMOJI[new_status]} *{monitor.name}* {_VERB[new_status]}\n{monitor.url}"
            ))
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        return True

    async def _send_slack(self, payload: dict[str, Any]) -> None:
        """POST to Slack incoming webhook."""
        try:
            async with httpx.AsyncClient(timeout=10) as client:
                resp = await client.post(self.slack_webhook, json=payload)
                if resp.status_code != 200:
                    logger.warning("Slack webhook returned %d: %s", resp.status_code, resp.text[:200])
        except Exception as exc:
            logger.warning("Slack notification failed: %s", exc)

    async def _send_telegram(self, text: str) -> None:
        """POST to Telegram Bot API."""
        url = f"https://api.telegram.org/bot{self.telegram_token}/sendMessage"
        try:
            async with httpx.AsyncClient(timeout=10) as client:
                resp = await client.post(
                    url,
                    json={"chat_id": self.telegram_chat_id, "text": text, "parse_mode": "Markdown"},
                )
                if resp.status_code != 200:
                    logger.warning("Telegram API returned %d: %s", resp.status_code, resp.text[:200])
        except Exception as exc:
            logger.warning("Telegram notification failed: %s", exc)

    async def close(self) -> None:
        await self.discord.close()
