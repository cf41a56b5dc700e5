from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..capture.session import CaptureSessionController
from ..common.datetime_utils import now_local
from ..common.validators import require_non_empty
from ..core import constants
from ..core.enums import CheckField, PresenceAction, VerificationMethod
from ..core.exceptions import (
    NotCheckedInYetError,
    PresenceDeniedError,
    ValidationError,
    VerificationError,
)
from ..presence.attestor import PresenceAttestor
from ..verification.gateway import VerificationGateway
from ..verification.model import VerificationResult
from .messages import user_message
from .model import AttendanceRecord, CheckEvent
from .policy import TimeWindowPolicy
from .repository import AttendanceRecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttemptResult:
    record: AttendanceRecord
    action: PresenceAction
    already_recorded: bool = False
    verification: Optional[VerificationResult] = None

    @property
    def event(self) -> Optional[CheckEvent]:
        return self.record.event(CheckField.for_action(self.action))


class AttendanceCoordinator:
    """Drives one presence attempt: presence, office hours, capture, verification, write.

    Per subject and day the record goes NOT_CHECKED_IN -> CHECKED_IN ->
    CHECKED_OUT. Repeating a completed step returns the stored record with
    ``already_recorded=True`` instead of failing.
    """

    def __init__(
        self,
        store: AttendanceRecordStore,
        policy: TimeWindowPolicy,
        gateway: VerificationGateway,
        attestor: Optional[PresenceAttestor] = None,
        *,
        capture_sessions: Optional[Callable[[], CaptureSessionController]] = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self._store = store
        self._policy = policy
        self._gateway = gateway
        self._attestor = attestor
        self._capture_sessions = capture_sessions
        self._clock = clock

    def attempt_check_in(
        self,
        subject_id: str,
        *,
        session: Optional[CaptureSessionController] = None,
        sessions: Optional[Callable[[], CaptureSessionController]] = None,
        attestor: Optional[PresenceAttestor] = None,
        now: Optional[datetime] = None,
    ) -> AttemptResult:
        return self._attempt(
            PresenceAction.CHECK_IN, subject_id, session=session, sessions=sessions, attestor=attestor, now=now
        )

    def attempt_check_out(
        self,
        subject_id: str,
        *,
        session: Optional[CaptureSessionController] = None,
        sessions: Optional[Callable[[], CaptureSessionController]] = None,
        attestor: Optional[PresenceAttestor] = None,
        now: Optional[datetime] = None,
    ) -> AttemptResult:
        return self._attempt(
            PresenceAction.CHECK_OUT, subject_id, session=session, sessions=sessions, attestor=attestor, now=now
        )

    def today_record(self, subject_id: str, *, now: Optional[datetime] = None) -> Optional[AttendanceRecord]:
        subject_id = require_non_empty(subject_id, "subject_id")
        return self._store.get(subject_id, (now or self._clock()).date())

    def history(self, subject_id: str, limit: int = constants.DEFAULT_HISTORY_LIMIT) -> Sequence[AttendanceRecord]:
        subject_id = require_non_empty(subject_id, "subject_id")
        if int(limit) <= 0:
            raise ValidationError("limit must be positive")
        return self._store.get_recent(subject_id, int(limit))

    # ------------------------------------------------------------------

    def _attempt(
        self,
        action: PresenceAction,
        subject_id: str,
        *,
        session: Optional[CaptureSessionController],
        sessions: Optional[Callable[[], CaptureSessionController]],
        attestor: Optional[PresenceAttestor],
        now: Optional[datetime],
    ) -> AttemptResult:
        subject_id = require_non_empty(subject_id, "subject_id")
        now = now or self._clock()
        today = now.date()
        field = CheckField.for_action(action)

        existing = self._store.get(subject_id, today)
        if existing is not None and existing.event(field) is not None:
            logger.info(
                "%s already recorded for %s on %s",
                action.value,
                subject_id,
                today,
                extra={"event": action.value, "status": "duplicate"},
            )
            return AttemptResult(record=existing, action=action, already_recorded=True)
        if action == PresenceAction.CHECK_OUT and (existing is None or existing.check_in is None):
            raise NotCheckedInYetError(f"{subject_id} has not checked in on {today:%Y-%m-%d}")

        attestor = attestor or self._attestor
        if attestor is None or not attestor.is_present_on_site():
            raise PresenceDeniedError(f"{subject_id} is not on site")

        decision = self._policy.require(action, now)

        # Sessions are built only after the duplicate, presence and window checks.
        session = session or (sessions or self._new_session)()
        with session:
            sample = session.capture()

        try:
            result = self._gateway.verify(subject_id, sample)
        except VerificationError as exc:
            logger.info(
                "%s rejected for %s: %s",
                action.value,
                subject_id,
                user_message(exc),
                extra={"event": action.value, "status": exc.kind.value},
            )
            raise

        event = CheckEvent(
            time=now.replace(microsecond=0),
            confidence=result.confidence,
            verified=result.is_match,
            late_or_early=decision.late_or_early,
            method=VerificationMethod.FACE,
            device=sample.device,
        )
        record = self._store.put_if_absent(subject_id, today, field, event)
        # Stored timestamps have second precision; an equal event means this write landed.
        won = record.event(field) == event

        logger.info(
            "%s recorded for %s at %s (flagged=%s)",
            action.value,
            subject_id,
            now.isoformat(),
            decision.late_or_early,
            extra={"event": action.value, "status": "success" if won else "duplicate"},
        )
        return AttemptResult(record=record, action=action, already_recorded=not won, verification=result)

    def _new_session(self) -> CaptureSessionController:
        if self._capture_sessions is None:
            raise ValidationError("no capture device configured; a capture session must be supplied")
        return self._capture_sessions()
