from __future__ import annotations

import threading

import pytest

from face_attendance.core.exceptions import RateLimitedError
from face_attendance.verification.rate_limiter import PerSubjectRateLimiter


class FakeClock:
    def __init__(self, t=50.0):
        self.t = t

    def __call__(self):
        return self.t

    def advance(self, seconds):
        self.t += seconds


def test_same_subject_within_interval_is_limited():
    clock = FakeClock()
    limiter = PerSubjectRateLimiter(3.0, clock=clock)

    limiter.acquire("alice")
    clock.advance(1.0)

    with pytest.raises(RateLimitedError) as exc_info:
        limiter.acquire("alice")
    assert exc_info.value.retry_after == pytest.approx(2.0)


def test_rejected_attempt_does_not_move_the_window():
    clock = FakeClock()
    limiter = PerSubjectRateLimiter(3.0, clock=clock)

    limiter.acquire("alice")
    clock.advance(2.0)
    with pytest.raises(RateLimitedError):
        limiter.acquire("alice")

    clock.advance(1.0)
    limiter.acquire("alice")


def test_different_subjects_do_not_interfere():
    limiter = PerSubjectRateLimiter(3.0, clock=FakeClock())

    limiter.acquire("alice")
    limiter.acquire("bob")

    assert limiter.retry_after("alice") == pytest.approx(3.0)
    assert limiter.retry_after("carol") == 0.0


def test_reset_clears_subject():
    limiter = PerSubjectRateLimiter(3.0, clock=FakeClock())
    limiter.acquire("alice")

    limiter.reset("alice")

    limiter.acquire("alice")


def test_concurrent_attempts_for_one_subject_admit_exactly_one():
    limiter = PerSubjectRateLimiter(3.0, clock=FakeClock())
    barrier = threading.Barrier(10)
    admitted = []
    limited = []

    def worker():
        barrier.wait()
        try:
            limiter.acquire("alice")
            admitted.append(1)
        except RateLimitedError:
            limited.append(1)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(admitted) == 1
    assert len(limited) == 9


class BlockingClock:
    """Parks the first call until released, to hold acquire() mid-update."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls == 1:
            self.entered.set()
            self.release.wait(timeout=5)
        return 50.0


@pytest.mark.parametrize("subject", ["alice", None])
def test_reset_waits_for_an_in_flight_acquire(subject):
    clock = BlockingClock()
    limiter = PerSubjectRateLimiter(3.0, clock=clock)

    acquirer = threading.Thread(target=limiter.acquire, args=("alice",))
    acquirer.start()
    assert clock.entered.wait(timeout=5)

    resetter = threading.Thread(target=limiter.reset, args=(subject,))
    resetter.start()
    resetter.join(timeout=0.2)
    assert resetter.is_alive()

    clock.release.set()
    acquirer.join(timeout=5)
    resetter.join(timeout=5)

    assert not resetter.is_alive()
    assert limiter.retry_after("alice") == 0.0


def test_reset_all_clears_every_subject():
    limiter = PerSubjectRateLimiter(3.0, clock=FakeClock())
    limiter.acquire("alice")
    limiter.acquire("bob")

    limiter.reset()

    assert limiter.retry_after("alice") == 0.0
    assert limiter.retry_after("bob") == 0.0
