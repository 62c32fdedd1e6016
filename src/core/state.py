"""In-memory ownership of the pipeline state.

The keeper is the only writer to the store. Every mutating component calls
``persist()`` after it finishes its read-modify-write, and a failed write is
logged rather than raised: in-memory state stays authoritative for the rest
of the process run.
"""

from __future__ import annotations

import logging

from core.models import PipelineState
from core.ports import StateStorePort

LOGGER = logging.getLogger(__name__)


class StateKeeper:
    """Holds one PipelineState and writes it through a StateStorePort."""

    def __init__(self, store: StateStorePort, state: PipelineState | None = None) -> None:
        self._store = store
        self.state = state if state is not None else store.load()

    def persist(self) -> bool:
        """Rewrite the full aggregate. Returns False when the write failed."""

        try:
            self._store.save(self.state)
        except Exception:
            LOGGER.exception("Failed saving state")
            return False
        return True

    def reset(self) -> None:
        """Drop everything, including checked keys and trust entries."""

        self.state = PipelineState()
        self.persist()

    def is_checked(self, key: str) -> bool:
        return key in self.state.checked

    def mark_checked(self, key: str) -> None:
        self.state.checked.add(key)
        self.persist()
