from __future__ import annotations

from core.handles import handle_key, normalize_handle


def test_handle_key_collapses_whitespace_and_case() -> None:
    assert handle_key("  Foo \t  Bar\n") == "foo bar"
    assert handle_key("FOO BAR") == handle_key("foo   bar")


def test_normalize_handle_keeps_case() -> None:
    assert normalize_handle("  Foo   Bar ") == "Foo Bar"


def test_empty_inputs_give_empty_key() -> None:
    assert handle_key("") == ""
    assert handle_key("   \n\t") == ""
    assert handle_key(None) == ""
