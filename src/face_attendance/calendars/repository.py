from __future__ import annotations

from datetime import date
from typing import Protocol, Sequence

from ..core.enums import RequestStatus
from .model import Holiday, LeaveRecord


class LeaveCalendar(Protocol):
    def approved_leave_overlapping(self, subject_id: str, start_date: date, end_date: date) -> Sequence[LeaveRecord]:
        """Approved leave of ``subject_id`` intersecting ``[start_date, end_date]``."""

        raise NotImplementedError


class HolidayCalendar(Protocol):
    def holidays_overlapping(self, start_date: date, end_date: date) -> Sequence[Holiday]:
        raise NotImplementedError


class InMemoryLeaveCalendar(LeaveCalendar):
    def __init__(self, leaves: Sequence[LeaveRecord] = ()):
        self._leaves = list(leaves)

    def approved_leave_overlapping(self, subject_id: str, start_date: date, end_date: date) -> Sequence[LeaveRecord]:
        return [
            lv
            for lv in self._leaves
            if lv.subject_id == subject_id
            and lv.status == RequestStatus.APPROVED
            and lv.range.overlaps(start_date, end_date)
        ]


class InMemoryHolidayCalendar(HolidayCalendar):
    def __init__(self, holidays: Sequence[Holiday] = ()):
        self._holidays = list(holidays)

    def holidays_overlapping(self, start_date: date, end_date: date) -> Sequence[Holiday]:
        return [h for h in self._holidays if h.range.overlaps(start_date, end_date)]
