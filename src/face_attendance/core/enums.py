from __future__ import annotations

from enum import Enum


class PresenceAction(str, Enum):
    """Attendance action requested by a subject."""

    CHECK_IN = "check-in"
    CHECK_OUT = "check-out"


class CheckField(str, Enum):
    """Slot of an attendance record targeted by a conditional write."""

    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"

    @classmethod
    def for_action(cls, action: PresenceAction) -> "CheckField":
        return cls.CHECK_IN if action == PresenceAction.CHECK_IN else cls.CHECK_OUT


class DayStatus(str, Enum):
    """Per-day classification used by reports."""

    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    ON_LEAVE = "ON_LEAVE"
    HOLIDAY = "HOLIDAY"
    NON_WORKING = "NON_WORKING"


class RequestStatus(str, Enum):
    """Approval state of a leave request."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class VerificationMethod(str, Enum):
    FACE = "face"
    UNKNOWN = "unknown"


class CaptureState(str, Enum):
    IDLE = "IDLE"
    STARTING = "STARTING"
    ACTIVE = "ACTIVE"
    CAPTURING = "CAPTURING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class ErrorKind(str, Enum):
    """Machine-readable failure kinds surfaced to callers."""

    VALIDATION = "VALIDATION"
    OUTSIDE_WINDOW = "OUTSIDE_WINDOW"
    PRESENCE_DENIED = "PRESENCE_DENIED"
    NOT_CHECKED_IN_YET = "NOT_CHECKED_IN_YET"
    DEVICE_UNAVAILABLE = "DEVICE_UNAVAILABLE"
    CAPTURE_FAILED = "CAPTURE_FAILED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    NO_FACE_DETECTED = "NO_FACE_DETECTED"
    MULTIPLE_FACES_DETECTED = "MULTIPLE_FACES_DETECTED"
    LOW_CONFIDENCE = "LOW_CONFIDENCE"
    WRONG_PERSON = "WRONG_PERSON"
    RATE_LIMITED = "RATE_LIMITED"
    TRANSIENT = "TRANSIENT"
