from __future__ import annotations

import math

from ..core.enums import ErrorKind
from ..core.exceptions import (
    DomainError,
    MultipleFacesDetectedError,
    OutsideWindowError,
    RateLimitedError,
)

_MESSAGES = {
    ErrorKind.VALIDATION: "The request is invalid.",
    ErrorKind.PRESENCE_DENIED: "You must be at the office to mark attendance.",
    ErrorKind.NOT_CHECKED_IN_YET: "You need to check in before checking out.",
    ErrorKind.DEVICE_UNAVAILABLE: "The camera is not available. Close other apps using it and try again.",
    ErrorKind.CAPTURE_FAILED: "Could not capture an image. Please try again.",
    ErrorKind.INVALID_TRANSITION: "The camera is busy with another step. Please try again.",
    ErrorKind.NO_FACE_DETECTED: "No face detected. Please make sure your face is clearly visible.",
    ErrorKind.LOW_CONFIDENCE: "Face verification failed. Please try again with better lighting.",
    ErrorKind.WRONG_PERSON: "Face verification failed. You were recognized as a different user.",
    ErrorKind.TRANSIENT: "The face verification service is unavailable. Please try again.",
}


def user_message(exc: DomainError) -> str:
    """Translate a domain failure into the text shown to the subject."""
    if isinstance(exc, OutsideWindowError):
        return f"{exc.action.value.capitalize()} is only allowed during office hours (boundary {exc.boundary:%H:%M})."
    if isinstance(exc, MultipleFacesDetectedError):
        return f"{exc.count} faces detected. Please make sure only your face is in the frame."
    if isinstance(exc, RateLimitedError):
        return f"Please wait {max(1, math.ceil(exc.retry_after))} seconds before trying again."
    return _MESSAGES.get(exc.kind, str(exc) or _MESSAGES[ErrorKind.VALIDATION])
