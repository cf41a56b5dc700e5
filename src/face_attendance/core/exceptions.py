from __future__ import annotations

from datetime import datetime, time
from typing import Optional

from .enums import CaptureState, ErrorKind, PresenceAction


class DomainError(Exception):
    """Base exception for business rule violations.

    Every subclass carries a machine-readable ``kind`` so callers can render a
    specific message instead of a generic failure.
    """

    kind: ErrorKind = ErrorKind.VALIDATION
    retryable: bool = False


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class OutsideWindowError(DomainError):
    kind = ErrorKind.OUTSIDE_WINDOW

    def __init__(self, action: PresenceAction, boundary: time, now: datetime):
        self.action = action
        self.boundary = boundary
        self.now = now
        super().__init__(f"{action.value} is not allowed at {now:%H:%M:%S} (boundary {boundary:%H:%M})")


class PresenceDeniedError(DomainError):
    kind = ErrorKind.PRESENCE_DENIED


class NotCheckedInYetError(DomainError):
    kind = ErrorKind.NOT_CHECKED_IN_YET


class CaptureError(DomainError):
    """Base class for capture device failures."""


class DeviceUnavailableError(CaptureError):
    kind = ErrorKind.DEVICE_UNAVAILABLE


class CaptureFailedError(CaptureError):
    kind = ErrorKind.CAPTURE_FAILED


class InvalidTransitionError(CaptureError):
    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, operation: str, state: CaptureState):
        self.operation = operation
        self.state = state
        super().__init__(f"cannot {operation}() from state {state.value}")


class VerificationError(DomainError):
    """Base class for verification gateway failures."""


class NoFaceDetectedError(VerificationError):
    kind = ErrorKind.NO_FACE_DETECTED


class MultipleFacesDetectedError(VerificationError):
    kind = ErrorKind.MULTIPLE_FACES_DETECTED

    def __init__(self, count: int):
        self.count = count
        super().__init__(f"{count} faces detected")


class LowConfidenceError(VerificationError):
    kind = ErrorKind.LOW_CONFIDENCE

    def __init__(self, confidence: float, matched_identity: Optional[str] = None):
        self.confidence = confidence
        self.matched_identity = matched_identity
        super().__init__(f"confidence {confidence:.5f} below threshold")


class WrongPersonError(VerificationError):
    kind = ErrorKind.WRONG_PERSON

    def __init__(self, claimed_identity: str, matched_identity: str, confidence: float):
        self.claimed_identity = claimed_identity
        self.matched_identity = matched_identity
        self.confidence = confidence
        super().__init__(f"sample matched {matched_identity!r} instead of {claimed_identity!r}")


class RateLimitedError(VerificationError):
    kind = ErrorKind.RATE_LIMITED

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(f"retry after {retry_after:.2f}s")


class TransientError(VerificationError):
    """Network or service fault; safe to retry immediately."""

    kind = ErrorKind.TRANSIENT
    retryable = True
