"""Shared notification formatting helpers.

Keeping formatting here prevents drift between adapters and keeps messages
consistent regardless of delivery channel.
"""

from __future__ import annotations

import html
from datetime import datetime
from typing import Any, Callable, List, Optional

from core.flags import is_low_score
from core.models import DigestPage, FeedContext, Profile

DIVIDER = "──────────────"
DIGEST_TITLE = "Daily Low Score List"


def format_source_label(context: Any, source_aliases: dict[str, str]) -> Optional[str]:
    """Return a human-friendly source label, using configured aliases."""

    if not isinstance(context, FeedContext):
        return None
    alias = source_aliases.get(context.source_key)
    if not alias:
        return context.source_key
    return f"{alias} ({context.source_key})"


def escape_md(value: str) -> str:
    for ch in r"*[`_":
        value = value.replace(ch, f"\\{ch}")
    return value


def _timestamp(now: Optional[datetime]) -> str:
    moment = now or datetime.now().astimezone()
    return moment.astimezone().strftime("%H:%M:%S %d-%m-%Y").strip()


def _escaper(mode: str) -> Callable[[str], str]:
    if mode == "markdown":
        return escape_md
    if mode == "html":
        return html.escape
    if mode == "text":
        return str
    raise ValueError(f"Unsupported notification format: {mode}")


def _bold(label: str, mode: str) -> str:
    if mode == "html":
        return f"<b>{label}</b>"
    if mode == "text":
        return label
    return f"**{label}**"


def format_digest_page(page: DigestPage, mode: str) -> str:
    """Render one digest page: header, the handle lines, then the page footer."""

    escape = _escaper(mode)
    lines: List[str] = [
        _bold(DIGEST_TITLE, mode),
        f"{_bold('Threshold:', mode)} < {page.threshold}",
        f"{_bold('Count:', mode)} {page.item_count}",
        DIVIDER,
        "",
    ]
    lines.extend(escape(line) for line in page.lines)
    if page.total > 1:
        lines.extend(["", f"Page {page.index}/{page.total}"])
    return "\n".join(lines)


def format_flag_report(
    profile: Profile,
    context: Any,
    source_aliases: dict[str, str],
    mode: str,
    now: Optional[datetime] = None,
) -> str:
    """Render an immediate report for one newly flagged handle."""

    escape = _escaper(mode)
    lines = [
        f"[{escape(_timestamp(now))}]",
        _bold("SCRUB FLAGGED", mode),
        f"{_bold('Handle:', mode)} {escape(profile.display_handle)}",
        f"{_bold('Score:', mode)} {profile.score}",
    ]
    if profile.tier:
        lines.append(f"{_bold('Tier:', mode)} {escape(profile.tier)}")

    source = format_source_label(context, source_aliases)
    if source:
        lines.append(f"{_bold('Source:', mode)} {escape(source)}")
    permalink = getattr(context, "permalink", None)
    if permalink:
        if mode == "html":
            safe_link = html.escape(permalink)
            lines.extend(["", _bold("Link:", mode), f"<a href=\"{safe_link}\">{safe_link}</a>"])
        else:
            lines.extend(["", _bold("Link:", mode), permalink])
    lines.append(DIVIDER)
    return "\n".join(lines)


def format_check_report(profile: Profile, threshold: int, mode: str) -> str:
    """Render the reply for an interactive "check now" request."""

    escape = _escaper(mode)
    if profile.score is None:
        result = "UNKNOWN"
    else:
        result = "FLAGGED" if is_low_score(profile.score, threshold) else "OK"
    score = "?" if profile.score is None else str(profile.score)

    lines = [
        _bold("Score Check", mode),
        f"{_bold('Handle:', mode)} {escape(profile.display_handle)}",
        f"{_bold('Score:', mode)} {score}",
        f"{_bold('Result:', mode)} {result}",
    ]
    if profile.tier:
        lines.append(f"{_bold('Tier:', mode)} {escape(profile.tier)}")
    return "\n".join(lines)
