"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class ScrubConfig:
    """Worker settings for the background lookup lane."""

    threshold: int
    delay_seconds: float
    lookup_timeout_seconds: float
    immediate_flag_reports: bool = False


@dataclass(frozen=True)
class BackoffConfig:
    """Rate-limit cooldown policy."""

    base_seconds: float
    max_seconds: float


@dataclass(frozen=True)
class DigestConfig:
    """Digest cadence and page sizing consumed by the scheduler."""

    interval: timedelta
    tick_seconds: float
    page_chars: int
