from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional, Sequence

from ..core.enums import CheckField, VerificationMethod
from ..core.exceptions import NotCheckedInYetError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import AttendanceRecord, CheckEvent
from .repository import AttendanceRecordStore

_SELECT_COLUMNS = """
    subject_id, work_date,
    check_in_time, check_in_confidence, check_in_verified, check_in_flagged, check_in_method, check_in_device,
    check_out_time, check_out_confidence, check_out_verified, check_out_flagged, check_out_method, check_out_device
"""


def _event_from_row(row: Dict[str, Any], prefix: str) -> Optional[CheckEvent]:
    event_time = row.get(f"{prefix}_time")
    if event_time is None:
        return None
    confidence = row.get(f"{prefix}_confidence")
    return CheckEvent(
        time=event_time,
        confidence=float(confidence) if confidence is not None else None,
        verified=bool(row.get(f"{prefix}_verified")),
        late_or_early=bool(row.get(f"{prefix}_flagged")),
        method=VerificationMethod(row.get(f"{prefix}_method") or VerificationMethod.UNKNOWN.value),
        device=row.get(f"{prefix}_device"),
    )


def _record_from_row(row: Dict[str, Any]) -> AttendanceRecord:
    return AttendanceRecord(
        subject_id=str(row["subject_id"]),
        work_date=row["work_date"],
        check_in=_event_from_row(row, CheckField.CHECK_IN.value),
        check_out=_event_from_row(row, CheckField.CHECK_OUT.value),
    )


class MySQLAttendanceRepository(AttendanceRecordStore):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, subject_id: str, work_date: date) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            return self._select(cur, subject_id, work_date)

    def put_if_absent(
        self,
        subject_id: str,
        work_date: date,
        field: CheckField,
        event: CheckEvent,
    ) -> AttendanceRecord:
        prefix = field.value
        # The "<prefix>_time IS NULL" guard makes the UPDATE the atomic set-if-absent;
        # InnoDB row locks serialise concurrent writers on the same (subject, day).
        guard = f"{prefix}_time IS NULL"
        if field == CheckField.CHECK_OUT:
            guard += " AND check_in_time IS NOT NULL"

        with db_cursor(self._conn_factory) as (_, cur):
            if field == CheckField.CHECK_IN:
                cur.execute(
                    "INSERT IGNORE INTO attendance_records(subject_id, work_date) VALUES(%s,%s)",
                    (subject_id, work_date),
                )

            cur.execute(
                f"""
                UPDATE attendance_records
                SET {prefix}_time=%s, {prefix}_confidence=%s, {prefix}_verified=%s,
                    {prefix}_flagged=%s, {prefix}_method=%s, {prefix}_device=%s
                WHERE subject_id=%s AND work_date=%s AND {guard}
                """,
                (
                    event.time,
                    event.confidence,
                    int(event.verified),
                    int(event.late_or_early),
                    event.method.value,
                    event.device,
                    subject_id,
                    work_date,
                ),
            )

            record = self._select(cur, subject_id, work_date)
            if record is None or record.check_in is None:
                raise NotCheckedInYetError(f"{subject_id} has not checked in on {work_date:%Y-%m-%d}")
            return record

    def list_between(self, subject_id: str, start_date: date, end_date: date) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_SELECT_COLUMNS}
                FROM attendance_records
                WHERE subject_id=%s AND work_date BETWEEN %s AND %s
                ORDER BY work_date ASC
                """,
                (subject_id, start_date, end_date),
            )
            return [_record_from_row(r) for r in fetchall(cur)]

    def get_recent(self, subject_id: str, limit: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_SELECT_COLUMNS}
                FROM attendance_records
                WHERE subject_id=%s
                ORDER BY work_date DESC
                LIMIT %s
                """,
                (subject_id, int(limit)),
            )
            return [_record_from_row(r) for r in fetchall(cur)]

    @staticmethod
    def _select(cur, subject_id: str, work_date: date) -> Optional[AttendanceRecord]:
        cur.execute(
            f"""
            SELECT {_SELECT_COLUMNS}
            FROM attendance_records
            WHERE subject_id=%s AND work_date=%s
            """,
            (subject_id, work_date),
        )
        r = fetchone(cur)
        if not r:
            return None
        return _record_from_row(r)
