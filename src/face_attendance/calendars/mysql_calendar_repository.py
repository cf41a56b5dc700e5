from __future__ import annotations

from datetime import date
from typing import Sequence

from ..core.enums import RequestStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .model import DateRange, Holiday, LeaveRecord
from .repository import HolidayCalendar, LeaveCalendar


class MySQLLeaveCalendar(LeaveCalendar):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def approved_leave_overlapping(self, subject_id: str, start_date: date, end_date: date) -> Sequence[LeaveRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT subject_id, start_date, end_date, reason, status
                FROM leave_requests
                WHERE subject_id=%s AND status=%s
                  AND start_date <= %s AND end_date >= %s
                ORDER BY start_date ASC
                """,
                (subject_id, RequestStatus.APPROVED.value, end_date, start_date),
            )
            return [
                LeaveRecord(
                    subject_id=str(r["subject_id"]),
                    range=DateRange(r["start_date"], r["end_date"]),
                    status=RequestStatus(r["status"]),
                    reason=r.get("reason") or "",
                )
                for r in fetchall(cur)
            ]


class MySQLHolidayCalendar(HolidayCalendar):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def holidays_overlapping(self, start_date: date, end_date: date) -> Sequence[Holiday]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT name, start_date, end_date
                FROM holidays
                WHERE start_date <= %s AND end_date >= %s
                ORDER BY start_date ASC
                """,
                (end_date, start_date),
            )
            return [Holiday(name=str(r["name"]), range=DateRange(r["start_date"], r["end_date"])) for r in fetchall(cur)]
