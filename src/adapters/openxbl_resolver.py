"""OpenXBL profile lookup adapter.

Implements the core ResolverPort with two calls per handle: a search to find
the account id, then an account fetch for the profile settings. HTTP 429 is
reported as RateLimitedError so the worker can back off; everything else
maps onto the other ResolverError subclasses.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from core.errors import (
    HandleNotFoundError,
    LookupFailedError,
    MalformedResponseError,
    RateLimitedError,
)
from core.handles import normalize_handle
from core.models import Profile

LOGGER = logging.getLogger(__name__)

BASE_URL = "https://xbl.io/api/v2"


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def _error_message(data: Any, fallback: str) -> str:
    if isinstance(data, dict):
        message = data.get("error") or data.get("message")
        if message:
            return str(message)
    return fallback


def _parse_score(value: Any) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def pick_best_match(people: list, wanted: str) -> dict:
    """Prefer an exact gamertag match, then modern gamertag, then the first hit."""

    wanted_lower = wanted.lower()
    for field in ("gamertag", "modernGamertag"):
        for person in people:
            if isinstance(person, dict) and str(person.get(field) or "").lower() == wanted_lower:
                return person
    first = people[0]
    return first if isinstance(first, dict) else {}


def parse_profile(account: Any, fallback_handle: str) -> Profile:
    """Build a Profile from an account payload's settings list."""

    try:
        settings = account["profileUsers"][0]["settings"]
    except (KeyError, IndexError, TypeError):
        raise MalformedResponseError("Unexpected profile format.") from None
    if not isinstance(settings, list):
        raise MalformedResponseError("Unexpected profile format.")

    values = {
        item.get("id"): item.get("value")
        for item in settings
        if isinstance(item, dict) and item.get("id")
    }
    score = _parse_score(values.get("Gamerscore"))
    if score is None:
        raise MalformedResponseError("Invalid gamerscore.")
    return Profile(
        display_handle=values.get("Gamertag") or fallback_handle,
        score=score,
        tier=values.get("AccountTier") or None,
        picture_url=values.get("GameDisplayPicRaw") or values.get("GameDisplayPic") or None,
    )


class OpenXblResolver:
    """Async client for the OpenXBL search + account endpoints."""

    def __init__(
        self,
        api_key: str,
        timeout: float = 8.0,
        base_url: str = BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"X-Authorization": api_key, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str, what: str) -> Any:
        try:
            response = await self._client.get(path)
        except httpx.HTTPError as exc:
            raise LookupFailedError(f"OpenXBL {what} request failed: {type(exc).__name__}: {exc}") from exc

        if response.status_code == 429:
            raise RateLimitedError(
                f"OpenXBL {what} rate limited",
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code == 404:
            raise HandleNotFoundError(_error_message(data, "Gamertag not found."))
        if response.is_error:
            raise LookupFailedError(
                _error_message(data, f"OpenXBL {what} failed (HTTP {response.status_code}).")
            )
        if data is None:
            raise MalformedResponseError(f"OpenXBL {what} returned invalid JSON.")
        return data

    async def resolve(self, raw_handle: str) -> Profile:
        wanted = normalize_handle(raw_handle)
        if not wanted:
            raise HandleNotFoundError("Empty gamertag.")

        search = await self._get_json(f"/search/{quote(wanted, safe='')}", "search")
        people = search.get("people") if isinstance(search, dict) else None
        if not isinstance(people, list) or not people:
            raise HandleNotFoundError("Gamertag not found.")

        best = pick_best_match(people, wanted)
        xuid = best.get("xuid")
        if not xuid:
            raise MalformedResponseError("Search result missing XUID.")

        account = await self._get_json(f"/account/{quote(str(xuid), safe='')}", "account")
        profile = parse_profile(account, best.get("gamertag") or wanted)
        LOGGER.debug("Resolved %s -> %s (%s)", wanted, profile.display_handle, profile.score)
        return profile
