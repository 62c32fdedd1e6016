from __future__ import annotations

import importlib
import json
import sys

import pytest


@pytest.fixture
def app(tmp_path, monkeypatch):
    config = {
        "feed": {"source": "@onlinelist"},
        "state": {"path": str(tmp_path / "state.json")},
        "logging": {"enabled": False},
    }
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config), encoding="utf-8")
    monkeypatch.setenv("SCRUBSCOPE_CONFIG", str(path))
    for name in ("settings", "app"):
        monkeypatch.delitem(sys.modules, name, raising=False)
    module = importlib.import_module("app")
    yield module
    for name in ("settings", "app"):
        sys.modules.pop(name, None)


def _state(tmp_path) -> dict:
    return json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))


def test_trust_edits_state_when_watcher_is_stopped(app, tmp_path, capsys) -> None:
    app.main(["trust", "  Foo "])

    assert "Trusted Foo." in capsys.readouterr().out
    assert "foo" in _state(tmp_path)["trusted"]


def test_trust_refused_while_watcher_holds_the_lock(app, tmp_path, capsys) -> None:
    # This test process stands in for a live watcher.
    (tmp_path / "state.json.lock").write_text(str(app.os.getpid()), encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        app.main(["trust", "Foo"])

    assert excinfo.value.code == 1
    assert "Stop it first" in capsys.readouterr().err
    assert not (tmp_path / "state.json").exists()


def test_reset_refused_while_watcher_holds_the_lock(app, tmp_path) -> None:
    (tmp_path / "state.json.lock").write_text(str(app.os.getpid()), encoding="utf-8")

    with pytest.raises(SystemExit):
        app.main(["reset"])

    assert not (tmp_path / "state.json").exists()


def test_unreadable_lock_is_ignored(app, tmp_path) -> None:
    (tmp_path / "state.json.lock").write_text("not a pid", encoding="utf-8")

    app.main(["untrust", "Foo"])
    app.main(["reset"])

    assert _state(tmp_path)["trusted"] == {}


def test_acquire_and_release_lock(app, tmp_path) -> None:
    app._acquire_lock()
    assert app._watcher_pid() == app.os.getpid()

    app._release_lock()
    assert app._watcher_pid() is None
