from __future__ import annotations

import threading
from datetime import datetime

import pytest

from face_attendance.attendance.memory_repository import InMemoryAttendanceRepository
from face_attendance.attendance.messages import user_message
from face_attendance.attendance.model import CheckEvent
from face_attendance.attendance.policy import TimeWindowPolicy
from face_attendance.attendance.service import AttendanceCoordinator
from face_attendance.capture.device import ExclusiveDeviceGuard
from face_attendance.capture.model import Sample
from face_attendance.capture.session import CaptureSessionController
from face_attendance.core.enums import CheckField, PresenceAction
from face_attendance.core.exceptions import (
    LowConfidenceError,
    NotCheckedInYetError,
    OutsideWindowError,
    PresenceDeniedError,
    RateLimitedError,
    WrongPersonError,
)
from face_attendance.verification.gateway import VerificationGateway
from face_attendance.verification.model import BoundingBox, FaceCandidate, RecognitionMatch
from face_attendance.verification.rate_limiter import PerSubjectRateLimiter


class FakeRecognizer:
    def __init__(self, matches):
        self.matches = list(matches)
        self.calls = 0

    def detect(self, sample):
        return [FaceCandidate(BoundingBox(0, 0, 10, 10), 0.99)]

    def recognize(self, sample):
        self.calls += 1
        return list(self.matches)

    def enroll(self, subject_id, sample):
        return "img"


class FakeDevice:
    def __init__(self):
        self.name = "fake-camera"
        self.opened = False
        self.open_calls = 0

    def open(self):
        self.open_calls += 1
        self.opened = True

    def read(self, timeout):
        return Sample(data=b"jpeg", device=self.name)

    def close(self):
        self.opened = False


class StaticAttestor:
    def __init__(self, present=True):
        self.present = present
        self.calls = 0

    def is_present_on_site(self):
        self.calls += 1
        return self.present


class SteppingClock:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        self.t += 10.0
        return self.t


def _coordinator(office_hours, matches=(RecognitionMatch("alice", 0.99),), *, store=None, enforce=True):
    device = FakeDevice()
    guard = ExclusiveDeviceGuard(device.name)
    store = store or InMemoryAttendanceRepository()
    recognizer = FakeRecognizer(matches)
    gateway = VerificationGateway(recognizer, rate_limiter=PerSubjectRateLimiter(3.0, clock=SteppingClock()))
    coordinator = AttendanceCoordinator(
        store,
        TimeWindowPolicy(office_hours, enforce=enforce),
        gateway,
        StaticAttestor(),
        capture_sessions=lambda: CaptureSessionController(device, guard=guard),
    )
    return coordinator, store, device, guard, recognizer


def test_check_in_records_event(office_hours, fixed_now):
    coordinator, store, device, guard, _ = _coordinator(office_hours)

    result = coordinator.attempt_check_in("alice", now=fixed_now)

    assert result.already_recorded is False
    assert result.action == PresenceAction.CHECK_IN
    assert result.event.confidence == 0.99
    assert result.event.late_or_early is False
    assert result.event.device == "fake-camera"
    assert store.get("alice", fixed_now.date()).check_in == result.event
    assert device.opened is False
    assert guard.held is False


def test_late_check_in_is_flagged(office_hours):
    coordinator, *_ = _coordinator(office_hours)

    result = coordinator.attempt_check_in("alice", now=datetime(2025, 1, 6, 9, 0, 1))

    assert result.record.is_late is True


def test_second_check_in_returns_existing_record_without_capturing(office_hours, fixed_now):
    coordinator, store, device, _, recognizer = _coordinator(office_hours)
    first = coordinator.attempt_check_in("alice", now=fixed_now)

    second = coordinator.attempt_check_in("alice", now=datetime(2025, 1, 6, 9, 30))

    assert second.already_recorded is True
    assert second.record.check_in == first.record.check_in
    assert device.open_calls == 1
    assert recognizer.calls == 1


def test_check_out_before_check_in_is_rejected(office_hours):
    coordinator, _, device, _, _ = _coordinator(office_hours)

    with pytest.raises(NotCheckedInYetError):
        coordinator.attempt_check_out("alice", now=datetime(2025, 1, 6, 17, 30))

    assert device.open_calls == 0


def test_full_day_and_idempotent_check_out(office_hours, fixed_now):
    coordinator, store, *_ = _coordinator(office_hours)
    coordinator.attempt_check_in("alice", now=fixed_now)

    out = coordinator.attempt_check_out("alice", now=datetime(2025, 1, 6, 17, 5))
    again = coordinator.attempt_check_out("alice", now=datetime(2025, 1, 6, 17, 45))

    assert out.already_recorded is False
    assert out.record.is_complete is True
    assert out.record.is_early is False
    assert out.record.duration_minutes == 485
    assert again.already_recorded is True
    assert again.record.check_out == out.record.check_out


def test_presence_denied_stops_before_capture(office_hours, fixed_now):
    coordinator, store, device, _, _ = _coordinator(office_hours)

    with pytest.raises(PresenceDeniedError):
        coordinator.attempt_check_in("alice", attestor=StaticAttestor(False), now=fixed_now)

    assert device.open_calls == 0
    assert store.get("alice", fixed_now.date()) is None


def test_outside_window_stops_before_capture(office_hours):
    coordinator, _, device, _, _ = _coordinator(office_hours)

    with pytest.raises(OutsideWindowError):
        coordinator.attempt_check_in("alice", now=datetime(2025, 1, 6, 11, 0))

    assert device.open_calls == 0


def test_window_not_enforced_allows_any_time(office_hours):
    coordinator, *_ = _coordinator(office_hours, enforce=False)

    result = coordinator.attempt_check_in("alice", now=datetime(2025, 1, 6, 3, 0))

    assert result.event.late_or_early is False


def test_verification_failure_releases_device_and_writes_nothing(office_hours, fixed_now):
    coordinator, store, device, guard, _ = _coordinator(office_hours, matches=[RecognitionMatch("bob", 0.99)])

    with pytest.raises(WrongPersonError) as exc_info:
        coordinator.attempt_check_in("alice", now=fixed_now)

    assert "different user" in user_message(exc_info.value)
    assert device.opened is False
    assert guard.held is False
    assert store.get("alice", fixed_now.date()) is None


def test_low_confidence_message(office_hours, fixed_now):
    coordinator, *_ = _coordinator(office_hours, matches=[RecognitionMatch("alice", 0.9)])

    with pytest.raises(LowConfidenceError) as exc_info:
        coordinator.attempt_check_in("alice", now=fixed_now)

    assert "try again" in user_message(exc_info.value)


def test_rate_limited_message_rounds_up():
    assert user_message(RateLimitedError(retry_after=1.2)) == "Please wait 2 seconds before trying again."


def test_lost_race_returns_winner_record(office_hours, fixed_now):
    class RacingStore(InMemoryAttendanceRepository):
        """Another terminal writes the check-in between the read and the write."""

        def __init__(self):
            super().__init__()
            self.raced = False

        def put_if_absent(self, subject_id, work_date, field, event):
            if not self.raced:
                self.raced = True
                winner = CheckEvent(
                    time=datetime(2025, 1, 6, 8, 59, 59),
                    confidence=0.98,
                    verified=True,
                    late_or_early=False,
                )
                super().put_if_absent(subject_id, work_date, field, winner)
            return super().put_if_absent(subject_id, work_date, field, event)

    store = RacingStore()
    coordinator, *_ = _coordinator(office_hours, store=store)

    result = coordinator.attempt_check_in("alice", now=fixed_now)

    assert result.already_recorded is True
    assert result.record.check_in.confidence == 0.98


def test_concurrent_check_ins_yield_one_event(office_hours, fixed_now):
    store = InMemoryAttendanceRepository()
    recognizer = FakeRecognizer([RecognitionMatch("alice", 0.99)])
    gateway = VerificationGateway(recognizer, rate_limiter=PerSubjectRateLimiter(0.0))
    coordinator = AttendanceCoordinator(store, TimeWindowPolicy(office_hours, enforce=True), gateway, StaticAttestor())
    barrier = threading.Barrier(5)
    results = []

    def worker():
        session = CaptureSessionController(FakeDevice())
        barrier.wait()
        results.append(coordinator.attempt_check_in("alice", session=session, now=fixed_now))

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    stored = store.get("alice", fixed_now.date()).event(CheckField.CHECK_IN)
    assert len(results) == 5
    assert all(r.record.check_in == stored for r in results)


def test_history_and_today(office_hours, fixed_now):
    coordinator, *_ = _coordinator(office_hours)
    coordinator.attempt_check_in("alice", now=fixed_now)

    assert coordinator.today_record("alice", now=fixed_now).check_in is not None
    assert coordinator.today_record("bob", now=fixed_now) is None
    assert [r.work_date for r in coordinator.history("alice", 5)] == [fixed_now.date()]


def test_per_call_session_factory_is_used_only_when_capture_is_needed(office_hours, fixed_now):
    coordinator, _, device, guard, _ = _coordinator(office_hours)
    built = []

    def sessions():
        built.append(1)
        return CaptureSessionController(device, guard=guard)

    first = coordinator.attempt_check_in("alice", sessions=sessions, now=fixed_now)
    duplicate = coordinator.attempt_check_in("alice", sessions=sessions, now=fixed_now)

    assert first.already_recorded is False
    assert duplicate.already_recorded is True
    assert built == [1]
    assert device.open_calls == 1
