"""Telegram chat notification adapter.

Formats human-readable Markdown messages and sends them through the user
client, to Saved Messages by default or to any configured chat.
"""

from __future__ import annotations

from typing import Any

from adapters.notification_formatting import format_digest_page, format_flag_report
from core.models import DigestPage, Profile


class TelegramChatNotifier:
    """Notifier adapter that sends messages via the Telethon user client."""

    def __init__(self, client, source_aliases: dict[str, str], target: Any = "me") -> None:
        self._client = client
        self._source_aliases = source_aliases
        self._target = target

    async def send_digest(self, page: DigestPage) -> None:
        message = format_digest_page(page, mode="markdown")
        await self._client.send_message(self._target, message, parse_mode="md", link_preview=False)

    async def send_flag(self, profile: Profile, context: Any) -> None:
        message = format_flag_report(profile, context, self._source_aliases, mode="markdown")
        await self._client.send_message(self._target, message, parse_mode="md", link_preview=False)
