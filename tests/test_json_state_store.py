from __future__ import annotations

import json
import os
from datetime import timedelta

from adapters.json_state_store import JsonStateStore
from core.models import AllTimeEntry, PendingEntry, PipelineState, TrustedEntry

from fakes import START


def _sample_state() -> PipelineState:
    return PipelineState(
        checked={"foo bar", "baz"},
        pending={"foo bar": PendingEntry("Foo Bar", 400, START, START + timedelta(minutes=5))},
        all_time={"foo bar": AllTimeEntry("Foo Bar", 400, START, START + timedelta(minutes=5))},
        trusted={"friend": TrustedEntry("Friend", START)},
        last_digest_at=START - timedelta(hours=1),
    )


def test_save_then_load_restores_everything(tmp_path) -> None:
    store = JsonStateStore(str(tmp_path / "state.json"))
    store.save(_sample_state())

    loaded = store.load()

    assert loaded.checked == {"foo bar", "baz"}
    assert loaded.pending["foo bar"].score == 400
    assert loaded.pending["foo bar"].last_seen_at == START + timedelta(minutes=5)
    assert loaded.all_time["foo bar"].last_known_score == 400
    assert loaded.trusted["friend"].display_handle == "Friend"
    assert loaded.last_digest_at == START - timedelta(hours=1)


def test_save_creates_directories_and_leaves_no_temp_file(tmp_path) -> None:
    path = tmp_path / "data" / "nested" / "state.json"
    store = JsonStateStore(str(path))

    store.save(_sample_state())

    assert path.exists()
    assert os.listdir(path.parent) == ["state.json"]
    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["checked"] == ["baz", "foo bar"]


def test_missing_file_loads_empty_state(tmp_path) -> None:
    loaded = JsonStateStore(str(tmp_path / "nope.json")).load()

    assert loaded.checked == set()
    assert loaded.pending == {}
    assert loaded.last_digest_at is None


def test_corrupt_or_unexpected_file_loads_empty_state(tmp_path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    listed = tmp_path / "list.json"
    listed.write_text("[1, 2, 3]", encoding="utf-8")

    assert JsonStateStore(str(broken)).load().checked == set()
    assert JsonStateStore(str(listed)).load().pending == {}


def test_broken_entries_are_skipped(tmp_path) -> None:
    path = tmp_path / "state.json"
    path.write_text(
        json.dumps(
            {
                "checked": ["a", "", "b"],
                "pending": {
                    "good": {"display_handle": "Good", "score": "12", "last_seen_at": "2024-01-01T12:00:00"},
                    "bad_score": {"display_handle": "Bad", "score": "n/a"},
                    "not_a_dict": 5,
                },
                "all_time": {"good": {"display_handle": "Good", "last_known_score": 12}},
                "trusted": {"pal": {"added_at": "garbage"}},
                "last_digest_at": "not a date",
            }
        ),
        encoding="utf-8",
    )

    loaded = JsonStateStore(str(path)).load()

    assert loaded.checked == {"a", "b"}
    assert list(loaded.pending) == ["good"]
    assert loaded.pending["good"].score == 12
    # Naive timestamps are read as UTC.
    assert loaded.pending["good"].last_seen_at == START
    assert loaded.all_time["good"].last_known_score == 12
    assert loaded.trusted["pal"].display_handle == "pal"
    assert loaded.trusted["pal"].added_at.tzinfo is not None
    assert loaded.last_digest_at is None
