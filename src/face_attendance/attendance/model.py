from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Optional

from ..core.enums import CheckField, VerificationMethod


@dataclass(frozen=True)
class CheckEvent:
    """A single verified check-in or check-out, immutable once written."""

    time: datetime
    confidence: Optional[float]
    verified: bool
    late_or_early: bool
    method: VerificationMethod = VerificationMethod.FACE
    device: Optional[str] = None


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one attendance record per (subject, calendar day)."""

    subject_id: str
    work_date: date
    check_in: Optional[CheckEvent] = None
    check_out: Optional[CheckEvent] = None

    def event(self, field: CheckField) -> Optional[CheckEvent]:
        return self.check_in if field == CheckField.CHECK_IN else self.check_out

    def with_event(self, field: CheckField, event: CheckEvent) -> "AttendanceRecord":
        """Return a copy with ``field`` populated; populated slots are left untouched."""
        if self.event(field) is not None:
            return self
        return replace(self, **{field.value: event})

    @property
    def is_late(self) -> bool:
        return bool(self.check_in and self.check_in.late_or_early)

    @property
    def is_early(self) -> bool:
        return bool(self.check_out and self.check_out.late_or_early)

    @property
    def is_complete(self) -> bool:
        return self.check_in is not None and self.check_out is not None

    @property
    def duration_minutes(self) -> Optional[int]:
        if not self.is_complete:
            return None
        return round((self.check_out.time - self.check_in.time).total_seconds() / 60)
