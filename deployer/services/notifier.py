"""Deployment notifications with protocol-based swappable implementations.

``WebhookNotifier`` posts messages to a chat webhook (Discord-style
``{"content": ...}`` body). ``NullNotifier`` is used when no webhook is
configured, and ``InMemoryNotifier`` captures messages for assertions.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

import httpx
import structlog

from deployer.errors import NotificationError

logger = structlog.get_logger()


class Notifier(Protocol):
    """Protocol for best-effort delivery of a text message."""

    async def notify(self, message: str) -> None:
        """Deliver *message*.

        Raises:
            NotificationError: If the message is empty or delivery fails.
        """
        ...


def _require_message(message: str) -> None:
    if not message:
        raise NotificationError("Notification message cannot be empty")


class WebhookNotifier:
    """Post notifications as JSON to a chat webhook URL."""

    def __init__(self, webhook_url: str, timeout: float = 10.0) -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout

    async def notify(self, message: str) -> None:
        """POST ``{"content": message}`` to the configured webhook."""
        _require_message(message)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._webhook_url, json={"content": message})
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"Error sending notification: {exc}") from exc

        logger.info("notification_sent")


class NullNotifier:
    """Notifier used when no webhook URL is configured; drops messages."""

    async def notify(self, message: str) -> None:
        _require_message(message)
        logger.debug("notification_skipped_no_webhook")


class InMemoryNotifier:
    """Test double that records delivered messages."""

    def __init__(self, error: NotificationError | None = None) -> None:
        self.messages: list[str] = []
        self.error = error

    async def notify(self, message: str) -> None:
        """Record *message*, or raise the configured error."""
        _require_message(message)
        if self.error is not None:
            raise self.error
        self.messages.append(message)


def format_deploy_message(repo: str, tag: str, files: Sequence[str]) -> str:
    """Describe a finished deployment for a chat channel."""
    listing = "\n".join(f"- {path}" for path in files) or "- (no files)"
    return f"New release deployed for: `repo:{repo}` `tag:{tag}`\n\nFiles:\n```\n{listing}\n```"
