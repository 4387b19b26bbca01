"""Tests for deployment notifiers."""

import json
from unittest.mock import patch

import httpx
import pytest

from deployer.errors import NotificationError
from deployer.services.notifier import (
    InMemoryNotifier,
    NullNotifier,
    WebhookNotifier,
    format_deploy_message,
)

WEBHOOK_URL = "https://discord.example/api/webhooks/123/abc"


def _patched_client(handler):
    """Make ``httpx.AsyncClient`` inside the notifier use a mock transport."""
    real_client = httpx.AsyncClient

    def factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    return patch("deployer.services.notifier.httpx.AsyncClient", side_effect=factory)


@pytest.mark.asyncio
async def test_webhook_notifier_posts_content() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(204)

    with _patched_client(handler):
        await WebhookNotifier(WEBHOOK_URL).notify("deployed v1.0.0")

    assert len(captured) == 1
    assert str(captured[0].url) == WEBHOOK_URL
    assert json.loads(captured[0].content) == {"content": "deployed v1.0.0"}


@pytest.mark.asyncio
async def test_webhook_notifier_error_status_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    with _patched_client(handler), pytest.raises(NotificationError):
        await WebhookNotifier(WEBHOOK_URL).notify("deployed v1.0.0")


@pytest.mark.asyncio
async def test_empty_message_rejected() -> None:
    with pytest.raises(NotificationError):
        await NullNotifier().notify("")
    with pytest.raises(NotificationError):
        await InMemoryNotifier().notify("")


@pytest.mark.asyncio
async def test_in_memory_notifier_records_and_fails_on_demand() -> None:
    notifier = InMemoryNotifier()
    await notifier.notify("one")
    assert notifier.messages == ["one"]

    failing = InMemoryNotifier(error=NotificationError("webhook down"))
    with pytest.raises(NotificationError, match="webhook down"):
        await failing.notify("two")
    assert failing.messages == []


def test_format_deploy_message_lists_files() -> None:
    message = format_deploy_message("my-site", "v1.0.0", ["index.html", "assets/app.js"])

    assert "`repo:my-site`" in message
    assert "`tag:v1.0.0`" in message
    assert "- index.html\n- assets/app.js" in message
