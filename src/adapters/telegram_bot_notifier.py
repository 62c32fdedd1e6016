"""Telegram Bot API notification adapter.

Uses the Bot API for delivery so notifications can be routed via a bot chat.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from adapters.notification_formatting import format_digest_page, format_flag_report
from core.models import DigestPage, Profile


class TelegramBotNotifier:
    """Notifier adapter that sends messages via the Telegram Bot API."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        source_aliases: dict[str, str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._source_aliases = source_aliases
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def _endpoint(self) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._bot_token}/sendMessage"

    async def _post(self, message: str) -> None:
        payload = {
            "chat_id": self._chat_id,
            "text": message,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        response = await self._client.post(self._endpoint(), json=payload)
        if response.is_error:
            raise RuntimeError(f"Bot API error {response.status_code}: {response.text}")

    async def send_digest(self, page: DigestPage) -> None:
        await self._post(format_digest_page(page, mode="html"))

    async def send_flag(self, profile: Profile, context: Any) -> None:
        await self._post(format_flag_report(profile, context, self._source_aliases, mode="html"))

    async def aclose(self) -> None:
        await self._client.aclose()
