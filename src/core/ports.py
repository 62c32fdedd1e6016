"""Ports (interfaces) used by the scrub pipeline.

Ports define the minimal contracts for storage, lookup and notification
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Any, Protocol

from core.models import DigestPage, PipelineState, Profile


class StateStorePort(Protocol):
    """Durable storage for the whole pipeline state."""

    def load(self) -> PipelineState:
        ...

    def save(self, state: PipelineState) -> None:
        ...


class ResolverPort(Protocol):
    """Remote profile lookup. Raises ResolverError subclasses on failure."""

    async def resolve(self, raw_handle: str) -> Profile:
        ...


class NotifierPort(Protocol):
    """Notification operations required by the pipeline."""

    async def send_digest(self, page: DigestPage) -> None:
        ...

    async def send_flag(self, profile: Profile, context: Any) -> None:
        ...
