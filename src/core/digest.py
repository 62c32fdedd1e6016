"""Periodic digest of pending low-score handles.

A tick evaluates due-ness from ``last_digest_at``. When due, the pending
window is snapshotted, paginated under a character budget and handed page by
page to the notifier. Pending is then cleared and the timestamp stamped
even when some pages failed to send.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Iterable, List, Optional

from core.config import DigestConfig
from core.models import DigestPage, DigestRun, PendingEntry, utc_now
from core.ports import NotifierPort
from core.state import StateKeeper
from core.trust import TrustGate

LOGGER = logging.getLogger(__name__)


def chunk_lines(lines: Iterable[str], max_chars: int) -> List[List[str]]:
    """Pack lines into pages whose newline-joined length stays within max_chars.

    A single line is never split; a line longer than the budget gets a page
    of its own.
    """

    pages: List[List[str]] = []
    current: List[str] = []
    size = 0
    for line in lines:
        added = len(line) + (1 if current else 0)
        if current and size + added > max_chars:
            pages.append(current)
            current = [line]
            size = len(line)
        else:
            current.append(line)
            size += added
    if current:
        pages.append(current)
    return pages


def render_line(entry: PendingEntry) -> str:
    return f"{entry.display_handle} ({entry.score})"


class DigestScheduler:
    """Decides when a digest is due and sends it through the notifier."""

    def __init__(
        self,
        keeper: StateKeeper,
        trust_gate: TrustGate,
        notifier: NotifierPort,
        config: DigestConfig,
        threshold: int,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._keeper = keeper
        self._trust = trust_gate
        self._notifier = notifier
        self._config = config
        self._threshold = threshold
        self._clock = clock
        self._sleep = sleep

    def is_due(self, now: datetime) -> bool:
        last = self._keeper.state.last_digest_at
        if last is None:
            return True
        return now - last >= self._config.interval

    def select_window(self, now: datetime) -> List[PendingEntry]:
        """Pending entries seen since the last digest, sorted by display handle."""

        state = self._keeper.state
        cutoff = state.last_digest_at or (now - self._config.interval)
        items = [
            entry
            for key, entry in state.pending.items()
            if entry.last_seen_at >= cutoff and not self._trust.is_trusted(key)
        ]
        return sorted(items, key=lambda entry: entry.display_handle)

    def build_pages(self, items: List[PendingEntry]) -> List[DigestPage]:
        chunks = chunk_lines((render_line(entry) for entry in items), self._config.page_chars)
        return [
            DigestPage(
                index=index,
                total=len(chunks),
                lines=chunk,
                item_count=len(items),
                threshold=self._threshold,
            )
            for index, chunk in enumerate(chunks, start=1)
        ]

    async def maybe_send_digest(self) -> Optional[DigestRun]:
        """Send the digest if due. Returns None when it was not due."""

        now = self._clock()
        if not self.is_due(now):
            return None

        items = self.select_window(now)
        if not items:
            LOGGER.info("[DIGEST] Due, but nothing pending. Updating last_digest_at anyway.")
            self._finish(now)
            return DigestRun(items=[], pages=[])

        pages = self.build_pages(items)
        failed = 0
        for page in pages:
            try:
                await self._notifier.send_digest(page)
            except Exception:
                failed += 1
                LOGGER.exception("[DIGEST] Failed sending page %s/%s", page.index, page.total)

        LOGGER.info(
            "[DIGEST] Sent %s flagged handles in %s message(s), %s failed.",
            len(items),
            len(pages),
            failed,
        )
        self._finish(now)
        return DigestRun(items=items, pages=pages, failed_pages=failed)

    def _finish(self, now: datetime) -> None:
        state = self._keeper.state
        # Entries flagged while pages were being sent are newer than the
        # snapshot; they belong to the next window.
        state.pending = {
            key: entry for key, entry in state.pending.items() if entry.last_seen_at > now
        }
        state.last_digest_at = now
        self._keeper.persist()

    async def run_forever(self) -> None:
        """Tick forever; errors are logged and the next tick still happens."""

        while True:
            try:
                await self.maybe_send_digest()
            except Exception:
                LOGGER.exception("[DIGEST] error")
            await self._sleep(self._config.tick_seconds)
