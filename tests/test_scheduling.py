import types

import pytest
import threadlite
from threadlite import scheduling
from threadlite.native import SQLITE_BUSY, SQLITE_DONE, SQLITE_LOCKED, SQLITE_OK, SQLITE_ROW
from threadlite.scheduling import (
    BUSY_DELAYS, BusyRetryController, CooperativeYieldController,
    normalize_busy_timeout, normalize_yield_threshold,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock(monkeypatch):
    clock = FakeClock()
    monkeypatch.setattr(scheduling, "time", types.SimpleNamespace(monotonic=clock.monotonic, sleep=clock.sleep))
    return clock


def scripted(*codes):
    calls = []
    remaining = list(codes)

    def attempt():
        calls.append(1)
        return remaining.pop(0) if len(remaining) > 1 else remaining[0]

    attempt.calls = calls
    return attempt


def test_normalize_yield_threshold():
    assert normalize_yield_threshold(None) == 1000
    assert normalize_yield_threshold(0) == 0
    assert normalize_yield_threshold(25) == 25
    for value in (-1, 2.0, "5", False):
        with pytest.raises(threadlite.ArgumentError):
            normalize_yield_threshold(value)


def test_normalize_busy_timeout():
    assert normalize_busy_timeout(None) is None
    assert normalize_busy_timeout(0) == 0.0
    assert normalize_busy_timeout(2) == 2.0
    assert isinstance(normalize_busy_timeout(2), float)
    for value in (-0.5, "1", True):
        with pytest.raises(threadlite.ArgumentError):
            normalize_busy_timeout(value)


def test_busy_no_timeout_single_attempt(clock):
    attempt = scripted(SQLITE_BUSY, SQLITE_OK)
    assert BusyRetryController(None).run(attempt) == SQLITE_BUSY
    assert len(attempt.calls) == 1
    assert clock.sleeps == []


def test_busy_zero_timeout_retries_once(clock):
    attempt = scripted(SQLITE_BUSY)
    assert BusyRetryController(0).run(attempt) == SQLITE_BUSY
    assert len(attempt.calls) == 2
    assert clock.sleeps == []


def test_busy_zero_timeout_retry_succeeds(clock):
    attempt = scripted(SQLITE_BUSY, SQLITE_ROW)
    assert BusyRetryController(0).run(attempt) == SQLITE_ROW


def test_busy_retries_until_success(clock):
    attempt = scripted(SQLITE_BUSY, SQLITE_BUSY, SQLITE_BUSY, SQLITE_DONE)
    assert BusyRetryController(1).run(attempt) == SQLITE_DONE
    assert len(attempt.calls) == 4
    assert clock.sleeps == [0.001, 0.002]


def test_busy_deadline(clock):
    attempt = scripted(SQLITE_BUSY)
    assert BusyRetryController(0.1).run(attempt) == SQLITE_BUSY
    assert list(clock.sleeps[:7]) == list(BUSY_DELAYS[:7])
    # The sleep after that is cut short by the deadline.
    assert clock.sleeps[7] == pytest.approx(0.1 - sum(BUSY_DELAYS[:7]))
    assert sum(clock.sleeps) == pytest.approx(0.1)


def test_busy_delay_caps_at_last_step(clock):
    attempt = scripted(SQLITE_BUSY)
    BusyRetryController(2).run(attempt)
    assert max(clock.sleeps) == BUSY_DELAYS[-1]


def test_busy_not_retryable(clock):
    attempt = scripted(SQLITE_BUSY, SQLITE_ROW)
    assert BusyRetryController(5).run(attempt, retryable=False) == SQLITE_BUSY
    assert len(attempt.calls) == 1


def test_busy_other_codes_pass_through(clock):
    attempt = scripted(SQLITE_LOCKED)
    assert BusyRetryController(5).run(attempt) == SQLITE_LOCKED
    assert len(attempt.calls) == 1

    attempt = scripted(SQLITE_LOCKED, SQLITE_OK)
    assert BusyRetryController(5).run(attempt, contention=(SQLITE_BUSY, SQLITE_LOCKED)) == SQLITE_OK
    assert len(attempt.calls) == 2


def _controller(threshold):
    return CooperativeYieldController(types.SimpleNamespace(_yield_threshold=threshold))


def test_yield_first_step_releases():
    controller = _controller(1000)
    assert controller.releases_next(started=False)
    assert not controller.releases_next(started=True)


def test_yield_every_threshold_steps():
    controller = _controller(3)
    pattern = [controller.releases_next(started=True) for _ in range(7)]
    assert pattern == [False, False, True, False, False, True, False]


def test_yield_reset_restarts_count():
    controller = _controller(3)
    controller.releases_next(started=True)
    controller.releases_next(started=True)
    controller.reset()
    assert not controller.releases_next(started=True)


def test_yield_threshold_zero_never_releases():
    controller = _controller(0)
    assert not controller.releases_next(started=False)
    assert not any(controller.releases_next(started=True) for _ in range(10))


def test_yield_threshold_one_always_releases():
    controller = _controller(1)
    assert all(controller.releases_next(started=True) for _ in range(5))


def test_yield_call_picks_library_view():
    controller = _controller(2)
    controller._hold = types.SimpleNamespace(sqlite3_step=lambda handle: ("hold", handle))
    controller._release = types.SimpleNamespace(sqlite3_step=lambda handle: ("release", handle))

    assert controller.call(False, "sqlite3_step", 7) == ("release", 7)
    assert controller.call(True, "sqlite3_step", 7) == ("hold", 7)
    assert controller.call(True, "sqlite3_step", 7) == ("release", 7)
