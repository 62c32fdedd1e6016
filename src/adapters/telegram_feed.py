"""Telegram feed reader adapter.

Polls the newest message(s) of the configured online-list chat, extracts
candidate handles from the text and offers each one to the pipeline. This
keeps Telethon-specific details out of the core pipeline; the core only sees
raw strings plus a FeedContext.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional

from telethon.tl.types import PeerChannel, PeerChat

from core.handles import handle_key, normalize_handle
from core.models import FeedContext

LOGGER = logging.getLogger(__name__)

DEFAULT_IGNORE_PATTERNS = [r"online list.*players", r"^3xloot$"]

_BULLET_PREFIX = re.compile(r"^[•\-]+\s*")
_ALLOWED = re.compile(r"^[a-zA-Z0-9 _.\-]+$")


def strip_markdown(text: str) -> str:
    text = re.sub(r"\*\*(.+?)\*\*", r"\1", text or "")
    text = re.sub(r"__(.+?)__", r"\1", text)
    text = re.sub(r"`(.+?)`", r"\1", text)
    return text.strip()


@dataclass(frozen=True)
class ExtractionRules:
    """Line filters applied when pulling handles out of a feed message."""

    min_length: int = 2
    max_length: int = 20
    ignore_patterns: List[re.Pattern] = field(
        default_factory=lambda: [re.compile(p, re.IGNORECASE) for p in DEFAULT_IGNORE_PATTERNS]
    )


def build_extraction_rules(
    min_length: int = 2,
    max_length: int = 20,
    ignore_patterns: Optional[Iterable[str]] = None,
) -> ExtractionRules:
    raw = DEFAULT_IGNORE_PATTERNS if ignore_patterns is None else list(ignore_patterns)
    return ExtractionRules(
        min_length=min_length,
        max_length=max_length,
        ignore_patterns=[re.compile(pattern, re.IGNORECASE) for pattern in raw],
    )


def extract_handles(text: str, rules: Optional[ExtractionRules] = None) -> List[str]:
    """Return candidate handles from a message, one per line, first spelling wins.

    Accepts bullet styles like ``• Name``, ``- Name`` and ``- **Name**``.
    Header lines matching an ignore pattern and lines outside the allowed
    length or charset are dropped.
    """

    rules = rules or ExtractionRules()
    out: List[str] = []
    seen: set[str] = set()

    for line in (text or "").splitlines():
        line = strip_markdown(line.strip())
        if not line:
            continue
        if any(pattern.search(line) for pattern in rules.ignore_patterns):
            continue

        line = strip_markdown(_BULLET_PREFIX.sub("", line))
        handle = normalize_handle(line)
        if not rules.min_length <= len(handle) <= rules.max_length:
            continue
        if not _ALLOWED.match(handle):
            continue

        key = handle_key(handle)
        if key in seen:
            continue
        seen.add(key)
        out.append(handle)

    return out


def source_key_from_message(message: Any) -> str:
    """Normalize a source key using a single rule enforced across the app."""

    chat = getattr(message, "chat", None)
    username = getattr(chat, "username", None)

    if isinstance(username, str) and username:
        return f"@{username.lower()}"

    # Fallback: always stable and universal
    return f"chat_id:{message.chat_id}"


def build_permalink(message: Any) -> Optional[str]:
    chat = getattr(message, "chat", None)
    username = getattr(chat, "username", None)
    # Prefer public usernames for permalinks when available.
    if isinstance(username, str) and username:
        return f"https://t.me/{username}/{message.id}"

    peer_id = getattr(message, "peer_id", None)
    if isinstance(peer_id, PeerChannel):
        return f"https://t.me/c/{peer_id.channel_id}/{message.id}"
    if isinstance(peer_id, PeerChat):
        return f"https://t.me/c/{peer_id.chat_id}/{message.id}"
    # PeerUser has no chat/channel id; no permalink is possible.
    return None


def build_feed_context(message: Any) -> FeedContext:
    return FeedContext(
        source_key=source_key_from_message(message),
        chat_id=getattr(message, "chat_id", None),
        message_id=getattr(message, "id", None),
        permalink=build_permalink(message),
    )


def entity_ref_from_source_key(source_key: str) -> Any:
    """Turn a configured source key into something ``get_entity`` accepts."""

    if source_key.startswith("chat_id:"):
        return int(source_key.split("chat_id:", 1)[1])
    return source_key


class OnlineListPoller:
    """Read the online-list chat on an interval and feed the pipeline."""

    def __init__(
        self,
        client,
        source_key: str,
        offer: Callable[[str, Any], bool],
        rules: Optional[ExtractionRules] = None,
        messages_per_poll: int = 1,
        poll_seconds: float = 60,
    ) -> None:
        self._client = client
        self._source_key = source_key
        self._offer = offer
        self._rules = rules or ExtractionRules()
        self._messages_per_poll = messages_per_poll
        self._poll_seconds = poll_seconds
        self._entity = None

    async def _resolve_entity(self):
        if self._entity is None:
            self._entity = await self._client.get_entity(entity_ref_from_source_key(self._source_key))
        return self._entity

    def ingest(self, message: Any) -> int:
        """Offer every handle in one message. Returns how many were admitted."""

        handles = extract_handles(getattr(message, "raw_text", None) or "", self._rules)
        context = build_feed_context(message)
        admitted = sum(1 for handle in handles if self._offer(handle, context))
        LOGGER.info(
            "[ONLINE LIST POLL] message=%s extracted=%s queued=%s",
            getattr(message, "id", None),
            len(handles),
            admitted,
        )
        return admitted

    async def poll_once(self) -> int:
        entity = await self._resolve_entity()
        messages = await self._client.get_messages(entity, limit=self._messages_per_poll)
        if not messages:
            return 0
        # Oldest first so queue order follows the feed.
        return sum(self.ingest(message) for message in reversed(list(messages)))

    async def run_forever(self) -> None:
        while True:
            try:
                await self.poll_once()
            except Exception:
                LOGGER.exception("[POLL] Could not read the online list %s", self._source_key)
            await asyncio.sleep(self._poll_seconds)
