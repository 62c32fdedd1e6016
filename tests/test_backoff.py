from __future__ import annotations

from core.backoff import BackoffController
from core.config import BackoffConfig

from fakes import FakeClock


def _controller(clock: FakeClock) -> BackoffController:
    return BackoffController(BackoffConfig(base_seconds=5, max_seconds=60), clock=clock)


def test_delay_doubles_per_consecutive_rate_limit_and_caps() -> None:
    backoff = _controller(FakeClock())

    delays = [backoff.record_rate_limit() for _ in range(6)]

    assert delays == [5, 10, 20, 40, 60, 60]
    assert backoff.consecutive == 6


def test_server_retry_after_wins_but_is_capped() -> None:
    backoff = _controller(FakeClock())

    assert backoff.record_rate_limit(retry_after=12) == 12
    assert backoff.record_rate_limit(retry_after=3600) == 60


def test_non_rate_limited_outcome_resets_the_count() -> None:
    backoff = _controller(FakeClock())
    backoff.record_rate_limit()
    backoff.record_rate_limit()

    backoff.record_outcome()

    assert backoff.consecutive == 0
    assert backoff.record_rate_limit() == 5


def test_remaining_tracks_the_clock() -> None:
    clock = FakeClock()
    backoff = _controller(clock)
    assert backoff.remaining() == 0

    backoff.record_rate_limit()
    assert backoff.remaining() == 5
    clock.advance(3)
    assert backoff.remaining() == 2
    clock.advance(10)
    assert backoff.remaining() == 0


def test_zero_retry_after_uses_the_exponential_schedule() -> None:
    clock = FakeClock()
    backoff = _controller(clock)

    assert backoff.record_rate_limit(retry_after=0) == 5
    assert backoff.record_rate_limit(retry_after=0) == 10
    assert backoff.remaining() == 10
