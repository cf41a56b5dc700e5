from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Mapping, Optional

from ..common.datetime_utils import at_time_of_day, parse_hhmm
from ..core import constants
from ..core.enums import PresenceAction
from ..core.exceptions import OutsideWindowError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OfficeHoursWindow:
    """Time-of-day boundaries for check-in and check-out."""

    check_in_open: time
    check_in_close: time
    check_out_open: time
    check_out_close: time
    late_threshold_minutes: int = 0
    early_threshold_minutes: int = 0

    def __post_init__(self):
        if self.check_in_open > self.check_in_close:
            raise ValidationError("check-in window opens after it closes")
        if self.check_out_open > self.check_out_close:
            raise ValidationError("check-out window opens after it closes")
        if self.late_threshold_minutes < 0 or self.early_threshold_minutes < 0:
            raise ValidationError("thresholds must not be negative")

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> "OfficeHoursWindow":
        """Build from settings, e.g. ``{"check_in_open": "09:00", ...}``."""
        return cls(
            check_in_open=parse_hhmm(str(values.get("check_in_open", constants.DEFAULT_CHECK_IN_OPEN))),
            check_in_close=parse_hhmm(str(values.get("check_in_close", constants.DEFAULT_CHECK_IN_CLOSE))),
            check_out_open=parse_hhmm(str(values.get("check_out_open", constants.DEFAULT_CHECK_OUT_OPEN))),
            check_out_close=parse_hhmm(str(values.get("check_out_close", constants.DEFAULT_CHECK_OUT_CLOSE))),
            late_threshold_minutes=int(values.get("late_threshold_minutes", constants.DEFAULT_LATE_THRESHOLD_MINUTES)),
            early_threshold_minutes=int(values.get("early_threshold_minutes", constants.DEFAULT_EARLY_THRESHOLD_MINUTES)),
        )

    def bounds(self, action: PresenceAction) -> tuple[time, time]:
        if action == PresenceAction.CHECK_IN:
            return self.check_in_open, self.check_in_close
        return self.check_out_open, self.check_out_close


@dataclass(frozen=True)
class WindowDecision:
    allowed: bool
    late_or_early: bool
    violated_boundary: Optional[time] = None
    bypassed: bool = False


def decide(action: PresenceAction, now: datetime, window: OfficeHoursWindow, *, bypass: bool = False) -> WindowDecision:
    """Decide whether ``action`` is legal at ``now`` and whether it counts as late (check-in) or early (check-out)."""
    if bypass:
        return WindowDecision(allowed=True, late_or_early=False, bypassed=True)

    opens, closes = window.bounds(action)
    open_at = at_time_of_day(now, opens)
    close_at = at_time_of_day(now, closes)

    if now < open_at:
        return WindowDecision(allowed=False, late_or_early=False, violated_boundary=opens)
    if now > close_at:
        return WindowDecision(allowed=False, late_or_early=False, violated_boundary=closes)

    if action == PresenceAction.CHECK_IN:
        flagged = now > open_at + timedelta(minutes=window.late_threshold_minutes)
    else:
        flagged = now < open_at + timedelta(minutes=window.early_threshold_minutes)
    return WindowDecision(allowed=True, late_or_early=flagged)


class TimeWindowPolicy:
    """Office-hours gate.

    ``enforce`` has no default; settings modules pass it explicitly.
    """

    def __init__(self, window: OfficeHoursWindow, *, enforce: bool):
        self._window = window
        self._enforce = bool(enforce)

    @property
    def window(self) -> OfficeHoursWindow:
        return self._window

    @property
    def enforced(self) -> bool:
        return self._enforce

    def decide(self, action: PresenceAction, now: datetime) -> WindowDecision:
        decision = decide(action, now, self._window, bypass=not self._enforce)
        if decision.bypassed:
            logger.warning(
                "Office-hours window bypassed for %s at %s",
                action.value,
                now.isoformat(),
                extra={"event": "window_bypass", "action": action.value},
            )
        return decision

    def require(self, action: PresenceAction, now: datetime) -> WindowDecision:
        decision = self.decide(action, now)
        if not decision.allowed:
            raise OutsideWindowError(action, decision.violated_boundary, now)
        return decision
