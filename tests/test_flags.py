from __future__ import annotations

from core.flags import Verdict
from core.models import Profile

from fakes import ScriptedResolver, make_pipeline


def test_low_score_creates_pending_and_all_time() -> None:
    pipeline, clock, _ = make_pipeline(ScriptedResolver({}), threshold=1000)

    verdict = pipeline.classifier.classify("foo bar", Profile("Foo Bar", 400))

    state = pipeline.keeper.state
    assert verdict is Verdict.FLAGGED
    pending = state.pending["foo bar"]
    assert (pending.display_handle, pending.score) == ("Foo Bar", 400)
    assert pending.first_seen_at == pending.last_seen_at == clock.now
    assert state.all_time["foo bar"].last_known_score == 400


def test_repeat_low_score_updates_without_resetting_first_seen() -> None:
    pipeline, clock, _ = make_pipeline(ScriptedResolver({}), threshold=1000)
    pipeline.classifier.classify("foo", Profile("foo", 400))
    first = clock.now
    clock.advance(3600)

    pipeline.classifier.classify("foo", Profile("Foo", 450))

    state = pipeline.keeper.state
    assert state.pending["foo"].display_handle == "Foo"
    assert state.pending["foo"].score == 450
    assert state.pending["foo"].first_seen_at == first
    assert state.pending["foo"].last_seen_at == clock.now
    assert state.all_time["foo"].last_known_score == 450
    assert state.all_time["foo"].first_seen_at == first


def test_score_at_threshold_is_clean() -> None:
    pipeline, _, _ = make_pipeline(ScriptedResolver({}), threshold=1000)

    assert pipeline.classifier.classify("foo", Profile("Foo", 1000)) is Verdict.CLEAN
    assert pipeline.keeper.state.pending == {}


def test_unknown_score_is_not_actionable() -> None:
    pipeline, _, _ = make_pipeline(ScriptedResolver({}), threshold=1000)

    assert pipeline.classifier.classify("foo", Profile("Foo", None)) is Verdict.UNKNOWN
    assert pipeline.keeper.state.pending == {}
    assert pipeline.keeper.state.all_time == {}


def test_trusted_handle_skips_both_writes() -> None:
    pipeline, _, _ = make_pipeline(ScriptedResolver({}), threshold=1000)
    pipeline.trust("Foo")

    assert pipeline.classifier.classify("foo", Profile("Foo", 0)) is Verdict.TRUSTED
    assert pipeline.keeper.state.pending == {}
    assert pipeline.keeper.state.all_time == {}


def test_trusted_resolved_display_form_is_also_skipped() -> None:
    pipeline, _, _ = make_pipeline(ScriptedResolver({}), threshold=1000)
    pipeline.trust("New Name")

    assert pipeline.classifier.classify("old name", Profile("New Name", 0)) is Verdict.TRUSTED
    assert pipeline.keeper.state.pending == {}
