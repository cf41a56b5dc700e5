from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..core.enums import CheckField
from .model import AttendanceRecord, CheckEvent


class AttendanceRecordStore(Protocol):
    def get(self, subject_id: str, work_date: date) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def put_if_absent(
        self,
        subject_id: str,
        work_date: date,
        field: CheckField,
        event: CheckEvent,
    ) -> AttendanceRecord:
        """Atomically set ``field`` only if it is still empty and return the stored record.

        A check-out write on a record without check-in raises NotCheckedInYetError.
        """

        raise NotImplementedError

    def list_between(self, subject_id: str, start_date: date, end_date: date) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def get_recent(self, subject_id: str, limit: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError
