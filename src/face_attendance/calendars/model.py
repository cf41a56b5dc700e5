from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterator

from ..common.datetime_utils import iter_days
from ..common.validators import require_date_range
from ..core.enums import RequestStatus


@dataclass(frozen=True)
class DateRange:
    """Calendar range, inclusive on both ends."""

    start: date
    end: date

    def __post_init__(self):
        require_date_range(self.start, self.end)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def overlaps(self, start: date, end: date) -> bool:
        return self.start <= end and start <= self.end

    def days(self) -> Iterator[date]:
        return iter_days(self.start, self.end)


@dataclass(frozen=True)
class LeaveRecord:
    subject_id: str
    range: DateRange
    status: RequestStatus = RequestStatus.APPROVED
    reason: str = ""


@dataclass(frozen=True)
class Holiday:
    name: str
    range: DateRange
