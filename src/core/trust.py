"""Manual allow-list (trust) operations."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from core.handles import handle_key, normalize_handle
from core.models import TrustedEntry, utc_now
from core.state import StateKeeper

LOGGER = logging.getLogger(__name__)


class TrustGate:
    """Membership test and mutation over the trusted mapping.

    Trusting is retroactive: pending and all-time flags for the key are
    removed at once. Untrusting only drops the trust entry.
    """

    def __init__(self, keeper: StateKeeper, clock: Callable[[], datetime] = utc_now) -> None:
        self._keeper = keeper
        self._clock = clock

    def is_trusted(self, key: str) -> bool:
        return bool(key) and key in self._keeper.state.trusted

    def trust(self, raw_handle: str) -> str:
        display = normalize_handle(raw_handle)
        key = handle_key(raw_handle)
        if not key:
            raise ValueError("Handle must not be empty")

        state = self._keeper.state
        state.trusted[key] = TrustedEntry(display_handle=display, added_at=self._clock())
        state.pending.pop(key, None)
        state.all_time.pop(key, None)
        self._keeper.persist()
        LOGGER.info("Trusted %s", display)
        return display

    def untrust(self, raw_handle: str) -> Optional[str]:
        key = handle_key(raw_handle)
        if not key:
            raise ValueError("Handle must not be empty")

        entry = self._keeper.state.trusted.pop(key, None)
        if entry is None:
            return None
        self._keeper.persist()
        LOGGER.info("Untrusted %s", entry.display_handle)
        return entry.display_handle
