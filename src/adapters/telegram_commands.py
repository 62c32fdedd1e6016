"""Chat command handling for the running watcher.

Commands are plain text so they work from Saved Messages or any configured
chat:

- ``/xcheck <handle>``: look a handle up now, bypassing queue and backoff
- ``/trust <handle>`` / ``/untrust <handle>``: edit the allow-list
- ``/status``: counters for the pipeline state
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from adapters.notification_formatting import format_check_report
from core.pipeline import ScrubPipeline
from core.ports import ResolverPort

LOGGER = logging.getLogger(__name__)

COMMAND_PATTERN = re.compile(r"^/(xcheck|trust|untrust|status)(?:@\w+)?(?:\s+(.*))?$", re.IGNORECASE | re.DOTALL)

CHECK_FAILED = "Could not retrieve score."


async def check_now(resolver: ResolverPort, raw_handle: str, threshold: int, mode: str) -> str:
    """Interactive lookup. Every failure collapses to one generic message."""

    try:
        profile = await resolver.resolve(raw_handle)
    except Exception as exc:
        LOGGER.warning("xcheck error for %s: %s", raw_handle, exc)
        return CHECK_FAILED
    return format_check_report(profile, threshold, mode)


class CommandHandler:
    """Turn a command message into a reply string (None when not a command)."""

    def __init__(self, pipeline: ScrubPipeline, resolver: ResolverPort, mode: str = "markdown") -> None:
        self._pipeline = pipeline
        self._resolver = resolver
        self._mode = mode

    async def handle(self, text: str) -> Optional[str]:
        match = COMMAND_PATTERN.match((text or "").strip())
        if not match:
            return None

        command = match.group(1).lower()
        argument = (match.group(2) or "").strip()

        if command == "status":
            return self._status()
        if not argument:
            return f"Usage: /{command} <handle>"

        if command == "xcheck":
            threshold = self._pipeline.classifier.threshold
            return await check_now(self._resolver, argument, threshold, self._mode)
        if command == "trust":
            display = self._pipeline.trust(argument)
            return f"Trusted {display}. Existing flags removed."

        display = self._pipeline.untrust(argument)
        if display is None:
            return f"{argument} was not trusted."
        return f"Untrusted {display}."

    def _status(self) -> str:
        status = self._pipeline.status()
        last = status["last_digest_at"]
        lines = [
            f"Checked: {status['checked']}",
            f"Pending: {status['pending']}",
            f"All-time flagged: {status['all_time']}",
            f"Trusted: {status['trusted']}",
            f"Queued: {status['queued']}",
            f"Worker: {'busy' if status['worker_busy'] else 'idle'}",
            f"Last digest: {last.isoformat() if last else 'never'}",
        ]
        if status["cooldown_seconds"] > 0:
            lines.append(f"Cooling down: {status['cooldown_seconds']:.0f}s")
        return "\n".join(lines)
