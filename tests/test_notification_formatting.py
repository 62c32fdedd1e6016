from __future__ import annotations

from datetime import datetime, timezone

import pytest

from adapters.notification_formatting import (
    DIGEST_TITLE,
    escape_md,
    format_check_report,
    format_digest_page,
    format_flag_report,
    format_source_label,
)
from core.models import DigestPage, FeedContext, Profile


def _page(index: int = 1, total: int = 1) -> DigestPage:
    return DigestPage(index=index, total=total, lines=["Foo_Bar (400)", "Baz (12)"], item_count=2, threshold=1000)


def test_format_source_label_with_alias() -> None:
    context = FeedContext(source_key="@onlinelist")

    assert format_source_label(context, {"@onlinelist": "Lobby"}) == "Lobby (@onlinelist)"
    assert format_source_label(context, {}) == "@onlinelist"
    assert format_source_label(None, {}) is None


def test_digest_page_markdown_escapes_handles() -> None:
    message = format_digest_page(_page(), mode="markdown")

    assert message.startswith(f"**{DIGEST_TITLE}**")
    assert "**Threshold:** < 1000" in message
    assert "**Count:** 2" in message
    assert "Foo\\_Bar (400)" in message
    assert "Page " not in message


def test_digest_page_footer_only_when_paginated() -> None:
    message = format_digest_page(_page(index=2, total=3), mode="html")

    assert message.startswith(f"<b>{DIGEST_TITLE}</b>")
    assert message.endswith("Page 2/3")


def test_flag_report_html_includes_link_and_source() -> None:
    context = FeedContext(source_key="@onlinelist", permalink="https://t.me/onlinelist/5?a=1&b=2")
    profile = Profile("Foo <Bar>", 400, tier="Silver")
    now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    message = format_flag_report(profile, context, {"@onlinelist": "Lobby"}, mode="html", now=now)

    assert "<b>SCRUB FLAGGED</b>" in message
    assert "<b>Handle:</b> Foo &lt;Bar&gt;" in message
    assert "<b>Score:</b> 400" in message
    assert "<b>Tier:</b> Silver" in message
    assert "<b>Source:</b> Lobby (@onlinelist)" in message
    assert '<a href="https://t.me/onlinelist/5?a=1&amp;b=2">' in message


def test_flag_report_without_context() -> None:
    message = format_flag_report(Profile("Foo", 1), None, {}, mode="text")

    assert "Source:" not in message
    assert "Link:" not in message


def test_check_report_results() -> None:
    assert "Result: FLAGGED" in format_check_report(Profile("Foo", 10), 1000, mode="text")
    assert "Result: OK" in format_check_report(Profile("Foo", 1000), 1000, mode="text")
    unknown = format_check_report(Profile("Foo", None), 1000, mode="text")
    assert "Score: ?" in unknown
    assert "Result: UNKNOWN" in unknown


def test_escape_md() -> None:
    assert escape_md("a*b_c`d[e") == "a\\*b\\_c\\`d\\[e"


def test_unknown_mode_is_rejected() -> None:
    with pytest.raises(ValueError):
        format_digest_page(_page(), mode="rtf")
