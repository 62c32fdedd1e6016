"""JSON file storage adapter.

Implements the core StateStorePort with one JSON document holding the whole
pipeline state. Reads never fail: a missing or corrupt file degrades to an
empty state. Writes go through a temp file and ``os.replace`` so a crash
mid-write cannot truncate the store.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional

from core.models import AllTimeEntry, PendingEntry, PipelineState, TrustedEntry, utc_now

LOGGER = logging.getLogger(__name__)


def _parse_time(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_int(value: Any) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class JsonStateStore:
    """Whole-document JSON persistence for PipelineState."""

    def __init__(self, path: str) -> None:
        self._path = path

    def load(self) -> PipelineState:
        """Read the state file, or return an empty state if it is unusable."""

        try:
            with open(self._path, "r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except FileNotFoundError:
            return PipelineState()
        except (OSError, ValueError):
            LOGGER.exception("State file %s is unreadable; starting over", self._path)
            return PipelineState()

        if not isinstance(raw, dict):
            LOGGER.warning("State file %s has an unexpected shape; starting over", self._path)
            return PipelineState()
        return self._decode(raw)

    def save(self, state: PipelineState) -> None:
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        tmp_path = f"{self._path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump(self._encode(state), handle, indent=2, ensure_ascii=False)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, self._path)

    @staticmethod
    def _encode(state: PipelineState) -> dict:
        return {
            "checked": sorted(state.checked),
            "pending": {
                key: {
                    "display_handle": entry.display_handle,
                    "score": entry.score,
                    "first_seen_at": _format_time(entry.first_seen_at),
                    "last_seen_at": _format_time(entry.last_seen_at),
                }
                for key, entry in state.pending.items()
            },
            "all_time": {
                key: {
                    "display_handle": entry.display_handle,
                    "last_known_score": entry.last_known_score,
                    "first_seen_at": _format_time(entry.first_seen_at),
                    "last_seen_at": _format_time(entry.last_seen_at),
                }
                for key, entry in state.all_time.items()
            },
            "trusted": {
                key: {
                    "display_handle": entry.display_handle,
                    "added_at": _format_time(entry.added_at),
                }
                for key, entry in state.trusted.items()
            },
            "last_digest_at": _format_time(state.last_digest_at),
        }

    @staticmethod
    def _decode(raw: dict) -> PipelineState:
        now = utc_now()
        state = PipelineState()

        checked = raw.get("checked")
        if isinstance(checked, list):
            state.checked = {str(key) for key in checked if key}

        # Individually broken entries are skipped rather than failing the load.
        pending = raw.get("pending")
        if isinstance(pending, dict):
            for key, value in pending.items():
                if not key or not isinstance(value, dict):
                    continue
                score = _parse_int(value.get("score"))
                if score is None:
                    continue
                state.pending[key] = PendingEntry(
                    display_handle=str(value.get("display_handle") or key),
                    score=score,
                    first_seen_at=_parse_time(value.get("first_seen_at")) or now,
                    last_seen_at=_parse_time(value.get("last_seen_at")) or now,
                )

        all_time = raw.get("all_time")
        if isinstance(all_time, dict):
            for key, value in all_time.items():
                if not key or not isinstance(value, dict):
                    continue
                score = _parse_int(value.get("last_known_score"))
                if score is None:
                    continue
                state.all_time[key] = AllTimeEntry(
                    display_handle=str(value.get("display_handle") or key),
                    last_known_score=score,
                    first_seen_at=_parse_time(value.get("first_seen_at")) or now,
                    last_seen_at=_parse_time(value.get("last_seen_at")) or now,
                )

        trusted = raw.get("trusted")
        if isinstance(trusted, dict):
            for key, value in trusted.items():
                if not key or not isinstance(value, dict):
                    continue
                state.trusted[key] = TrustedEntry(
                    display_handle=str(value.get("display_handle") or key),
                    added_at=_parse_time(value.get("added_at")) or now,
                )

        state.last_digest_at = _parse_time(raw.get("last_digest_at"))
        return state
