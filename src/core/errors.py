"""Error taxonomy shared by the core and its adapters."""

from __future__ import annotations

from typing import Optional


class ConfigError(RuntimeError):
    """Invalid or missing settings detected at startup."""


class ResolverError(Exception):
    """Base class for every failed profile lookup."""


class RateLimitedError(ResolverError):
    """The lookup service asked us to slow down.

    ``retry_after`` carries the server-suggested delay in seconds, if any.
    """

    def __init__(self, message: str = "Rate limited", retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class LookupFailedError(ResolverError):
    """Transport failure or unexpected HTTP status."""


class MalformedResponseError(ResolverError):
    """The service answered, but not in the shape we expect."""


class HandleNotFoundError(ResolverError):
    """The handle does not resolve to a profile."""


class StateLockedError(RuntimeError):
    """Another process (the running watcher) owns the state file."""
