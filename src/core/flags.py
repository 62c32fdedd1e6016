"""Score classification and the pending/all-time flag store."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Callable

from core.handles import handle_key
from core.models import AllTimeEntry, PendingEntry, Profile, utc_now
from core.state import StateKeeper
from core.trust import TrustGate

LOGGER = logging.getLogger(__name__)


class Verdict(str, Enum):
    TRUSTED = "trusted"
    UNKNOWN = "unknown"
    CLEAN = "clean"
    FLAGGED = "flagged"


def is_low_score(score: int, threshold: int) -> bool:
    return score < threshold


class Classifier:
    """Compare a resolved score with the threshold and record low scores."""

    def __init__(
        self,
        keeper: StateKeeper,
        trust_gate: TrustGate,
        threshold: int,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._keeper = keeper
        self._trust = trust_gate
        self.threshold = threshold
        self._clock = clock

    def classify(self, key: str, profile: Profile) -> Verdict:
        # The service may return a different display form than what we queued;
        # either spelling being trusted is enough to skip.
        if self._trust.is_trusted(key) or self._trust.is_trusted(handle_key(profile.display_handle)):
            LOGGER.info("[TRUSTED] %s (skipped)", profile.display_handle)
            return Verdict.TRUSTED

        if profile.score is None:
            LOGGER.warning("[UNKNOWN] %s has no usable score", profile.display_handle)
            return Verdict.UNKNOWN

        if not is_low_score(profile.score, self.threshold):
            LOGGER.info("[OK] %s score=%s (ignored)", profile.display_handle, profile.score)
            return Verdict.CLEAN

        self._record(key, profile)
        LOGGER.info("[FLAGGED] %s score=%s (queued for digest)", profile.display_handle, profile.score)
        return Verdict.FLAGGED

    def _record(self, key: str, profile: Profile) -> None:
        now = self._clock()
        state = self._keeper.state

        pending = state.pending.get(key)
        if pending is None:
            state.pending[key] = PendingEntry(
                display_handle=profile.display_handle,
                score=profile.score,
                first_seen_at=now,
                last_seen_at=now,
            )
        else:
            pending.display_handle = profile.display_handle
            pending.score = profile.score
            pending.last_seen_at = now

        record = state.all_time.get(key)
        if record is None:
            state.all_time[key] = AllTimeEntry(
                display_handle=profile.display_handle,
                last_known_score=profile.score,
                first_seen_at=now,
                last_seen_at=now,
            )
        else:
            record.display_handle = profile.display_handle
            record.last_known_score = profile.score
            record.last_seen_at = now

        self._keeper.persist()
