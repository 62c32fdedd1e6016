"""Admission gate and the sequential lookup worker.

The worker enforces a strict order per item:
1) Wait out any rate-limit cooldown (the whole lane pauses)
2) Skip items that became trusted or checked while queued
3) Resolve under a bounded timeout
4) Success: mark checked + persist, then classify
5) Rate limited: back off and re-offer the same raw handle
6) Anything else: log and drop, leaving the key eligible for rediscovery

At most one resolver call is ever in flight.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Optional

from core.backoff import BackoffController
from core.config import ScrubConfig
from core.errors import RateLimitedError, ResolverError
from core.flags import Classifier, Verdict
from core.handles import handle_key, normalize_handle
from core.models import Profile, QueueItem
from core.ports import NotifierPort, ResolverPort
from core.state import StateKeeper
from core.trust import TrustGate

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class ScrubQueue:
    """FIFO of pending lookups drained by a single non-reentrant loop."""

    def __init__(
        self,
        keeper: StateKeeper,
        trust_gate: TrustGate,
        classifier: Classifier,
        backoff: BackoffController,
        resolver: ResolverPort,
        config: ScrubConfig,
        notifier: Optional[NotifierPort] = None,
        sleep: Sleep = asyncio.sleep,
        autostart: bool = True,
    ) -> None:
        self._keeper = keeper
        self._trust = trust_gate
        self._classifier = classifier
        self._backoff = backoff
        self._resolver = resolver
        self._config = config
        self._notifier = notifier
        self._sleep = sleep
        self._autostart = autostart

        self._items: deque[QueueItem] = deque()
        # Keys that are queued or currently being looked up.
        self._outstanding: set[str] = set()
        self._working = False
        self._task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._items)

    @property
    def working(self) -> bool:
        return self._working

    def is_outstanding(self, key: str) -> bool:
        return key in self._outstanding

    def offer(self, raw_handle: str, notify_context: Any = None) -> bool:
        """Admit a handle as new work. Returns True when it was enqueued.

        This is the only admission control: at most one outstanding attempt
        per key, and never another attempt once the key is checked.
        """

        clean = normalize_handle(raw_handle)
        key = handle_key(clean)
        if not key:
            return False
        if self._trust.is_trusted(key):
            return False
        if self._keeper.is_checked(key):
            return False
        if key in self._outstanding:
            return False

        self._items.append(QueueItem(raw_handle=clean, key=key, notify_context=notify_context))
        self._outstanding.add(key)
        LOGGER.debug("Queued %s (%s waiting)", clean, len(self._items))
        if self._autostart:
            self._wake()
        return True

    def _wake(self) -> None:
        if self._working or (self._task is not None and not self._task.done()):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; a later drain() picks the backlog up.
            return
        self._task = loop.create_task(self.drain())

    async def join(self) -> None:
        """Wait until the worker has nothing left to do."""

        while self._task is not None and not self._task.done():
            await self._task
        if self._items and not self._working:
            await self.drain()

    async def drain(self) -> None:
        """Process queued items until the queue is empty."""

        if self._working:
            return
        self._working = True
        try:
            while self._items:
                await self._wait_for_cooldown()
                item = self._items.popleft()
                await self._process(item)
        finally:
            self._working = False

    async def _wait_for_cooldown(self) -> None:
        remaining = self._backoff.remaining()
        if remaining > 0:
            LOGGER.info("Lookup lane cooling down for %.1fs", remaining)
            await self._sleep(remaining)

    async def _process(self, item: QueueItem) -> None:
        if self._trust.is_trusted(item.key) or self._keeper.is_checked(item.key):
            self._outstanding.discard(item.key)
            return

        LOGGER.info("[CHECK] %s", item.raw_handle)
        try:
            profile = await asyncio.wait_for(
                self._resolver.resolve(item.raw_handle),
                timeout=self._config.lookup_timeout_seconds,
            )
        except RateLimitedError as exc:
            self._outstanding.discard(item.key)
            self._backoff.record_rate_limit(exc.retry_after)
            # Safe to re-offer: the key never made it into the checked set.
            self.offer(item.raw_handle, item.notify_context)
            return
        except ResolverError as exc:
            self._outstanding.discard(item.key)
            self._backoff.record_outcome()
            LOGGER.warning("[ERROR] %s: %s", item.raw_handle, exc)
            return
        except asyncio.TimeoutError:
            self._outstanding.discard(item.key)
            self._backoff.record_outcome()
            LOGGER.warning("[ERROR] %s: lookup timed out", item.raw_handle)
            return
        except Exception:
            self._outstanding.discard(item.key)
            self._backoff.record_outcome()
            LOGGER.exception("[ERROR] %s: unexpected lookup failure", item.raw_handle)
            return

        self._backoff.record_outcome()
        self._keeper.mark_checked(item.key)
        self._outstanding.discard(item.key)

        verdict = self._classifier.classify(item.key, profile)
        if verdict is Verdict.FLAGGED and self._config.immediate_flag_reports:
            await self._report_flag(profile, item.notify_context)

        if self._config.delay_seconds > 0:
            await self._sleep(self._config.delay_seconds)

    async def _report_flag(self, profile: Profile, context: Any) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.send_flag(profile, context)
        except Exception:
            LOGGER.exception("Failed sending flag report for %s", profile.display_handle)
