from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from ..attendance.model import AttendanceRecord
from ..attendance.repository import AttendanceRecordStore
from ..calendars.repository import HolidayCalendar, LeaveCalendar
from ..common.datetime_utils import iter_days
from ..common.validators import require_date_range
from ..core import constants
from ..core.enums import DayStatus
from ..core.exceptions import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DayReport:
    work_date: date
    status: DayStatus
    late: bool = False
    early: bool = False
    checked_out: bool = False
    on_leave: bool = False
    record: Optional[AttendanceRecord] = field(default=None, repr=False)

    @property
    def worked_minutes(self) -> Optional[int]:
        return self.record.duration_minutes if self.record is not None else None


@dataclass(frozen=True)
class ReportStats:
    total: int
    present: int
    absent: int
    late: int
    early: int
    on_leave: int
    holidays: int = 0
    complete: int = 0

    @property
    def attendance_rate(self) -> float:
        """Share of working days attended."""
        if self.total == 0:
            return 0.0
        return round(self.present / self.total, 4)

    def as_dict(self) -> dict:
        return {
            "total": self.total,
            "present": self.present,
            "absent": self.absent,
            "late": self.late,
            "early": self.early,
            "on_leave": self.on_leave,
            "holidays": self.holidays,
            "complete": self.complete,
            "attendance_rate": self.attendance_rate,
        }


@dataclass(frozen=True)
class AttendanceReport:
    subject_id: str
    start: date
    end: date
    records: list[DayReport]
    stats: ReportStats

    def to_rows(self) -> list[dict]:
        rows = []
        for d in self.records:
            rec = d.record
            minutes = d.worked_minutes
            rows.append(
                {
                    "work_date": d.work_date.strftime("%Y-%m-%d"),
                    "subject_id": self.subject_id,
                    "status": d.status.value,
                    "check_in": rec.check_in.time.strftime("%H:%M") if rec and rec.check_in else "-",
                    "check_out": rec.check_out.time.strftime("%H:%M") if rec and rec.check_out else "-",
                    "late": "yes" if d.late else "",
                    "early": "yes" if d.early else "",
                    "worked_hours": f"{minutes // 60:02d}:{minutes % 60:02d}" if minutes is not None else "-",
                }
            )
        return rows


class ReportAggregator:
    """Rebuilds a subject's attendance over a date range.

    Every day in ``[start, end]`` is classified from the stored record first;
    absent days covered by approved leave then become ON_LEAVE. Holidays and
    days outside ``working_weekdays`` override everything and leave the
    working-day count. ``on_leave`` counts every approved leave day in the
    range, whatever its final status.

    ``require_check_out`` selects what "present" means: a check-in alone
    (default) or a check-in followed by a check-out.
    """

    def __init__(
        self,
        store: AttendanceRecordStore,
        leaves: LeaveCalendar,
        holidays: HolidayCalendar,
        *,
        require_check_out: bool = False,
        working_weekdays: Iterable[int] = constants.DEFAULT_WORKING_WEEKDAYS,
    ):
        self._store = store
        self._leaves = leaves
        self._holidays = holidays
        self._require_check_out = bool(require_check_out)
        self._working_weekdays = frozenset(int(d) for d in working_weekdays)
        if not self._working_weekdays <= set(range(7)):
            raise ValidationError("working weekdays must be between 0 (Monday) and 6 (Sunday)")

    @property
    def working_weekdays(self) -> frozenset:
        return self._working_weekdays

    def report(self, subject_id: str, start_date: date, end_date: date) -> AttendanceReport:
        require_date_range(start_date, end_date)

        by_day = {r.work_date: r for r in self._store.list_between(subject_id, start_date, end_date)}
        leaves = self._leaves.approved_leave_overlapping(subject_id, start_date, end_date)
        holidays = self._holidays.holidays_overlapping(start_date, end_date)

        days: list[DayReport] = []
        for day in iter_days(start_date, end_date):
            on_leave = any(lv.range.contains(day) for lv in leaves)
            days.append(self._classify(day, by_day.get(day), on_leave))

        days = [
            _with_status(d, DayStatus.ON_LEAVE) if d.status == DayStatus.ABSENT and d.on_leave else d
            for d in days
        ]
        days = [
            _with_status(d, DayStatus.HOLIDAY) if any(h.range.contains(d.work_date) for h in holidays) else d
            for d in days
        ]
        days = [
            _with_status(d, DayStatus.NON_WORKING)
            if d.status != DayStatus.HOLIDAY and d.work_date.weekday() not in self._working_weekdays
            else d
            for d in days
        ]

        stats = _summarize(days)
        logger.debug(
            "Report for %s %s..%s: %s",
            subject_id,
            start_date,
            end_date,
            stats.as_dict(),
            extra={"event": "report"},
        )
        return AttendanceReport(subject_id=subject_id, start=start_date, end=end_date, records=days, stats=stats)

    def _classify(self, day: date, record: Optional[AttendanceRecord], on_leave: bool) -> DayReport:
        if record is None or record.check_in is None:
            return DayReport(work_date=day, status=DayStatus.ABSENT, on_leave=on_leave, record=record)

        present = record.is_complete if self._require_check_out else True
        return DayReport(
            work_date=day,
            status=DayStatus.PRESENT if present else DayStatus.ABSENT,
            late=record.is_late,
            early=record.is_early,
            checked_out=record.check_out is not None,
            on_leave=on_leave,
            record=record,
        )


_EXCLUDED = (DayStatus.HOLIDAY, DayStatus.NON_WORKING)


def _with_status(day: DayReport, status: DayStatus) -> DayReport:
    # Reclassified days keep the record (if any) for display but carry no flags.
    return DayReport(
        work_date=day.work_date,
        status=status,
        checked_out=day.checked_out,
        on_leave=day.on_leave,
        record=day.record,
    )


def _summarize(days: list[DayReport]) -> ReportStats:
    working = [d for d in days if d.status not in _EXCLUDED]
    present = [d for d in working if d.status == DayStatus.PRESENT]
    return ReportStats(
        total=len(working),
        present=len(present),
        absent=sum(1 for d in working if d.status == DayStatus.ABSENT),
        late=sum(1 for d in present if d.late),
        early=sum(1 for d in present if d.early),
        on_leave=sum(1 for d in days if d.on_leave),
        holidays=sum(1 for d in days if d.status == DayStatus.HOLIDAY),
        complete=sum(1 for d in working if d.record is not None and d.record.is_complete),
    )
