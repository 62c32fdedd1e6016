"""Scrub pipeline facade.

Wires one independent set of components around a single state object, so
several pipelines can coexist (tests build one per case).
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from core.backoff import BackoffController
from core.config import BackoffConfig, DigestConfig, ScrubConfig
from core.digest import DigestScheduler
from core.flags import Classifier
from core.models import DigestRun, utc_now
from core.ports import NotifierPort, ResolverPort, StateStorePort
from core.queue import ScrubQueue
from core.state import StateKeeper
from core.trust import TrustGate

LOGGER = logging.getLogger(__name__)


class ScrubPipeline:
    """Owns the state and exposes the operations the app layer needs."""

    def __init__(
        self,
        store: StateStorePort,
        resolver: ResolverPort,
        notifier: NotifierPort,
        scrub_config: ScrubConfig,
        backoff_config: BackoffConfig,
        digest_config: DigestConfig,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        autostart: bool = True,
    ) -> None:
        self.keeper = StateKeeper(store)
        self.trust_gate = TrustGate(self.keeper, clock=clock)
        self.classifier = Classifier(self.keeper, self.trust_gate, scrub_config.threshold, clock=clock)
        self.backoff = BackoffController(backoff_config, clock=clock)
        self.queue = ScrubQueue(
            keeper=self.keeper,
            trust_gate=self.trust_gate,
            classifier=self.classifier,
            backoff=self.backoff,
            resolver=resolver,
            config=scrub_config,
            notifier=notifier,
            sleep=sleep,
            autostart=autostart,
        )
        self.digest = DigestScheduler(
            keeper=self.keeper,
            trust_gate=self.trust_gate,
            notifier=notifier,
            config=digest_config,
            threshold=scrub_config.threshold,
            clock=clock,
            sleep=sleep,
        )

        state = self.keeper.state
        LOGGER.info(
            "State loaded: checked=%s, pending=%s, all_time=%s, trusted=%s, last_digest_at=%s",
            len(state.checked),
            len(state.pending),
            len(state.all_time),
            len(state.trusted),
            state.last_digest_at.isoformat() if state.last_digest_at else "never",
        )

    def offer(self, raw_handle: str, notify_context: Any = None) -> bool:
        return self.queue.offer(raw_handle, notify_context)

    def trust(self, raw_handle: str) -> str:
        return self.trust_gate.trust(raw_handle)

    def untrust(self, raw_handle: str) -> Optional[str]:
        return self.trust_gate.untrust(raw_handle)

    def reset(self) -> None:
        LOGGER.warning("Resetting pipeline state")
        self.keeper.reset()

    async def maybe_send_digest(self) -> Optional[DigestRun]:
        return await self.digest.maybe_send_digest()

    def status(self) -> dict[str, Any]:
        state = self.keeper.state
        return {
            "checked": len(state.checked),
            "pending": len(state.pending),
            "all_time": len(state.all_time),
            "trusted": len(state.trusted),
            "queued": len(self.queue),
            "worker_busy": self.queue.working,
            "last_digest_at": state.last_digest_at,
            "cooldown_seconds": self.backoff.remaining(),
        }
