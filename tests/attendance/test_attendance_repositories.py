from __future__ import annotations

import threading
from datetime import date, datetime

import pytest

from face_attendance.attendance.memory_repository import InMemoryAttendanceRepository
from face_attendance.attendance.model import AttendanceRecord, CheckEvent
from face_attendance.attendance.mysql_attendance_repository import MySQLAttendanceRepository
from face_attendance.core.enums import CheckField, VerificationMethod
from face_attendance.core.exceptions import NotCheckedInYetError


def _event(hour: int, minute: int = 0, *, flagged: bool = False) -> CheckEvent:
    return CheckEvent(
        time=datetime(2025, 1, 6, hour, minute),
        confidence=0.99,
        verified=True,
        late_or_early=flagged,
    )


def test_memory_put_if_absent_keeps_first_check_in():
    repo = InMemoryAttendanceRepository()
    day = date(2025, 1, 6)

    first = repo.put_if_absent("alice", day, CheckField.CHECK_IN, _event(9, 0))
    second = repo.put_if_absent("alice", day, CheckField.CHECK_IN, _event(9, 30, flagged=True))

    assert first.check_in == _event(9, 0)
    assert second.check_in == _event(9, 0)
    assert repo.get("alice", day).check_in.late_or_early is False


def test_memory_check_out_without_check_in_is_rejected():
    repo = InMemoryAttendanceRepository()

    with pytest.raises(NotCheckedInYetError):
        repo.put_if_absent("alice", date(2025, 1, 6), CheckField.CHECK_OUT, _event(17, 0))

    assert repo.get("alice", date(2025, 1, 6)) is None


def test_memory_concurrent_check_ins_store_exactly_one_event():
    repo = InMemoryAttendanceRepository()
    day = date(2025, 1, 6)
    events = [_event(9, m) for m in range(20)]
    barrier = threading.Barrier(len(events))
    results = []

    def worker(ev):
        barrier.wait()
        results.append(repo.put_if_absent("alice", day, CheckField.CHECK_IN, ev))

    threads = [threading.Thread(target=worker, args=(ev,)) for ev in events]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    stored = repo.get("alice", day).check_in
    assert len({r.check_in for r in results}) == 1
    assert all(r.check_in == stored for r in results)


def test_memory_list_between_and_recent_ordering():
    records = [
        AttendanceRecord("alice", date(2025, 1, d), check_in=_event(9, 0)) for d in (3, 6, 1, 7)
    ] + [AttendanceRecord("bob", date(2025, 1, 6), check_in=_event(9, 0))]
    repo = InMemoryAttendanceRepository(records)

    between = repo.list_between("alice", date(2025, 1, 2), date(2025, 1, 6))
    recent = repo.get_recent("alice", 2)

    assert [r.work_date.day for r in between] == [3, 6]
    assert [r.work_date.day for r in recent] == [7, 6]


def test_duration_minutes_for_complete_record():
    rec = AttendanceRecord("alice", date(2025, 1, 6), check_in=_event(9, 0), check_out=_event(17, 30))

    assert rec.is_complete is True
    assert rec.duration_minutes == 510
    assert AttendanceRecord("alice", date(2025, 1, 6), check_in=_event(9, 0)).duration_minutes is None


# ---- MySQL repository against a scripted cursor ----


class FakeCursor:
    def __init__(self, rows):
        self.rows = list(rows)
        self.executed: list[tuple[str, tuple]] = []
        self.closed = False

    def execute(self, sql, params=()):
        self.executed.append((" ".join(sql.split()), params))

    def fetchone(self):
        return self.rows.pop(0) if self.rows else None

    def fetchall(self):
        rows, self.rows = self.rows, []
        return rows

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, cursor: FakeCursor):
        self._cursor = cursor
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def cursor(self, dictionary=False):
        return self._cursor

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


class FakeConnFactory:
    def __init__(self, rows=()):
        self.cursor = FakeCursor(rows)
        self.conn = FakeConnection(self.cursor)

    def connect(self):
        return self.conn


def _row(**overrides):
    row = {
        "subject_id": "alice",
        "work_date": date(2025, 1, 6),
        "check_in_time": None,
        "check_in_confidence": None,
        "check_in_verified": 0,
        "check_in_flagged": 0,
        "check_in_method": None,
        "check_in_device": None,
        "check_out_time": None,
        "check_out_confidence": None,
        "check_out_verified": 0,
        "check_out_flagged": 0,
        "check_out_method": None,
        "check_out_device": None,
    }
    row.update(overrides)
    return row


def test_mysql_check_in_is_a_guarded_update_in_one_transaction():
    stored = _row(
        check_in_time=datetime(2025, 1, 6, 9, 0),
        check_in_confidence=0.99,
        check_in_verified=1,
        check_in_method="face",
        check_in_device="upload:alice",
    )
    factory = FakeConnFactory([stored])
    repo = MySQLAttendanceRepository(factory)

    record = repo.put_if_absent("alice", date(2025, 1, 6), CheckField.CHECK_IN, _event(9, 0))

    statements = [sql for sql, _ in factory.cursor.executed]
    assert statements[0].startswith("INSERT IGNORE INTO attendance_records")
    assert statements[1].startswith("UPDATE attendance_records")
    assert "check_in_time IS NULL" in statements[1]
    assert factory.conn.committed is True
    assert record.check_in.confidence == 0.99
    assert record.check_in.method == VerificationMethod.FACE
    assert record.check_in.device == "upload:alice"


def test_mysql_check_out_requires_check_in_and_rolls_back():
    factory = FakeConnFactory([_row()])
    repo = MySQLAttendanceRepository(factory)

    with pytest.raises(NotCheckedInYetError):
        repo.put_if_absent("alice", date(2025, 1, 6), CheckField.CHECK_OUT, _event(17, 0))

    update_sql = factory.cursor.executed[0][0]
    assert update_sql.startswith("UPDATE attendance_records")
    assert "check_out_time IS NULL AND check_in_time IS NOT NULL" in update_sql
    assert factory.conn.rolled_back is True
    assert factory.conn.committed is False
    assert factory.conn.closed is True


def test_mysql_get_recent_maps_rows():
    rows = [
        _row(work_date=date(2025, 1, 7), check_in_time=datetime(2025, 1, 7, 9, 5), check_in_flagged=1),
        _row(work_date=date(2025, 1, 6)),
    ]
    factory = FakeConnFactory(rows)
    repo = MySQLAttendanceRepository(factory)

    records = repo.get_recent("alice", 5)

    assert [r.work_date for r in records] == [date(2025, 1, 7), date(2025, 1, 6)]
    assert records[0].is_late is True
    assert records[1].check_in is None
    assert factory.cursor.executed[0][1] == ("alice", 5)
