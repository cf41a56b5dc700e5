from __future__ import annotations

import threading
from datetime import date
from typing import Optional, Sequence

from ..core.enums import CheckField
from ..core.exceptions import NotCheckedInYetError
from .model import AttendanceRecord, CheckEvent
from .repository import AttendanceRecordStore


class InMemoryAttendanceRepository(AttendanceRecordStore):
    """Process-local store; a single lock makes every conditional write atomic."""

    def __init__(self, records: Sequence[AttendanceRecord] = ()):
        self._lock = threading.Lock()
        self._by_subject_date: dict[tuple[str, date], AttendanceRecord] = {
            (r.subject_id, r.work_date): r for r in records
        }

    def get(self, subject_id: str, work_date: date) -> Optional[AttendanceRecord]:
        with self._lock:
            return self._by_subject_date.get((subject_id, work_date))

    def put_if_absent(
        self,
        subject_id: str,
        work_date: date,
        field: CheckField,
        event: CheckEvent,
    ) -> AttendanceRecord:
        key = (subject_id, work_date)
        with self._lock:
            current = self._by_subject_date.get(key)
            if current is None:
                if field == CheckField.CHECK_OUT:
                    raise NotCheckedInYetError(f"{subject_id} has not checked in on {work_date:%Y-%m-%d}")
                current = AttendanceRecord(subject_id=subject_id, work_date=work_date)
            elif field == CheckField.CHECK_OUT and current.check_in is None:
                raise NotCheckedInYetError(f"{subject_id} has not checked in on {work_date:%Y-%m-%d}")

            updated = current.with_event(field, event)
            self._by_subject_date[key] = updated
            return updated

    def list_between(self, subject_id: str, start_date: date, end_date: date) -> Sequence[AttendanceRecord]:
        with self._lock:
            items = [
                r
                for (sid, d), r in self._by_subject_date.items()
                if sid == subject_id and start_date <= d <= end_date
            ]
        items.sort(key=lambda r: r.work_date)
        return items

    def get_recent(self, subject_id: str, limit: int) -> Sequence[AttendanceRecord]:
        with self._lock:
            items = [r for r in self._by_subject_date.values() if r.subject_id == subject_id]
        items.sort(key=lambda r: r.work_date, reverse=True)
        return items[: int(limit)]
