from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from adapters.telegram_bot_notifier import TelegramBotNotifier
from adapters.telegram_notifier import TelegramChatNotifier
from core.models import DigestPage, FeedContext, Profile

PAGE = DigestPage(index=1, total=1, lines=["Foo (1)"], item_count=1, threshold=1000)


def _bot(handler) -> TelegramBotNotifier:
    return TelegramBotNotifier(
        bot_token="123:abc",
        chat_id="-100999",
        source_aliases={},
        transport=httpx.MockTransport(handler),
    )


def test_bot_notifier_posts_html_message() -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"ok": True})

    async def scenario():
        notifier = _bot(handler)
        await notifier.send_digest(PAGE)
        await notifier.aclose()

    asyncio.run(scenario())

    assert len(requests) == 1
    assert str(requests[0].url) == "https://api.telegram.org/bot123:abc/sendMessage"
    payload = json.loads(requests[0].content)
    assert payload["chat_id"] == "-100999"
    assert payload["parse_mode"] == "HTML"
    assert payload["text"].startswith("<b>Daily Low Score List</b>")


def test_bot_notifier_raises_on_error_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, text="chat not found")

    async def scenario():
        notifier = _bot(handler)
        try:
            await notifier.send_flag(Profile("Foo", 1), FeedContext(source_key="@onlinelist"))
        finally:
            await notifier.aclose()

    with pytest.raises(RuntimeError, match="Bot API error 400"):
        asyncio.run(scenario())


class FakeClient:
    def __init__(self) -> None:
        self.sent = []

    async def send_message(self, target, message, parse_mode=None, link_preview=True):
        self.sent.append((target, message, parse_mode, link_preview))


def test_chat_notifier_sends_markdown_to_target() -> None:
    client = FakeClient()
    notifier = TelegramChatNotifier(client, {"@onlinelist": "Lobby"}, target="me")

    asyncio.run(notifier.send_flag(Profile("Foo_Bar", 3), FeedContext(source_key="@onlinelist")))

    target, message, parse_mode, link_preview = client.sent[0]
    assert (target, parse_mode, link_preview) == ("me", "md", False)
    assert "**Handle:** Foo\\_Bar" in message
    assert "Lobby (@onlinelist)" in message
