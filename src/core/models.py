"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Profile:
    """A resolved profile. ``score`` is None when the service had no usable value."""

    display_handle: str
    score: Optional[int]
    tier: Optional[str] = None
    picture_url: Optional[str] = None


@dataclass(frozen=True)
class FeedContext:
    """Where a handle was discovered, carried along for immediate reports."""

    source_key: str
    chat_id: Optional[int] = None
    message_id: Optional[int] = None
    permalink: Optional[str] = None


@dataclass(frozen=True)
class QueueItem:
    """Transient unit of work; never persisted."""

    raw_handle: str
    key: str
    notify_context: Any = None


@dataclass
class PendingEntry:
    """A low-scoring handle waiting for the next digest."""

    display_handle: str
    score: int
    first_seen_at: datetime
    last_seen_at: datetime


@dataclass
class AllTimeEntry:
    """Audit record of a handle that was ever classified low."""

    display_handle: str
    last_known_score: int
    first_seen_at: datetime
    last_seen_at: datetime


@dataclass
class TrustedEntry:
    """Manual allow-list entry."""

    display_handle: str
    added_at: datetime


@dataclass
class PipelineState:
    """Aggregate root persisted as a single document after every mutation."""

    checked: set[str] = field(default_factory=set)
    pending: dict[str, PendingEntry] = field(default_factory=dict)
    all_time: dict[str, AllTimeEntry] = field(default_factory=dict)
    trusted: dict[str, TrustedEntry] = field(default_factory=dict)
    last_digest_at: Optional[datetime] = None


@dataclass(frozen=True)
class DigestPage:
    """One rendered chunk of a digest, in send order (1-based index)."""

    index: int
    total: int
    lines: list[str]
    item_count: int
    threshold: int

    @property
    def body(self) -> str:
        return "\n".join(self.lines)


@dataclass(frozen=True)
class DigestRun:
    """Outcome of a digest that was due."""

    items: list[PendingEntry]
    pages: list[DigestPage]
    failed_pages: int = 0
