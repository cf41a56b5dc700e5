from __future__ import annotations

import logging
from typing import Callable, Optional

from ..capture.model import Sample
from ..common.datetime_utils import now_local
from ..core import constants
from ..core.exceptions import (
    LowConfidenceError,
    MultipleFacesDetectedError,
    NoFaceDetectedError,
    TransientError,
    WrongPersonError,
)
from .model import VerificationResult
from .rate_limiter import PerSubjectRateLimiter
from .recognizer import Recognizer

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("face_attendance.security")


class VerificationGateway:
    """Turns a captured sample plus a claimed identity into an accept/reject decision.

    Decision order:
      1. per-subject rate limit (recorded before the recognizer is called);
      2. detection: no face / more than one face;
      3. recognition: no candidate;
      4. best candidate == claimed and confidence >= threshold -> accepted;
      5. best candidate != claimed and confidence > threshold -> WrongPersonError;
      6. anything else -> LowConfidenceError.

    The gateway never retries; confidences are reported verbatim.
    """

    def __init__(
        self,
        recognizer: Recognizer,
        *,
        threshold: float = constants.DEFAULT_MATCH_THRESHOLD,
        rate_limiter: Optional[PerSubjectRateLimiter] = None,
        clock: Callable = now_local,
    ):
        self._recognizer = recognizer
        self._threshold = float(threshold)
        self._rate_limiter = rate_limiter or PerSubjectRateLimiter()
        self._clock = clock

    @property
    def threshold(self) -> float:
        return self._threshold

    def verify(self, subject_id: str, sample: Sample) -> VerificationResult:
        self._rate_limiter.acquire(subject_id)

        try:
            faces = self._recognizer.detect(sample)
            if not faces:
                raise NoFaceDetectedError("no face detected in the sample")
            if len(faces) > 1:
                raise MultipleFacesDetectedError(len(faces))

            candidates = self._recognizer.recognize(sample)
        except (TimeoutError, ConnectionError) as exc:
            raise TransientError(str(exc) or "recognizer call failed") from exc

        if not candidates:
            raise NoFaceDetectedError("recognizer returned no candidates")

        best = max(candidates, key=lambda c: c.confidence)

        if best.identity == subject_id and best.confidence >= self._threshold:
            logger.info(
                "Verified %s with confidence %.5f",
                subject_id,
                best.confidence,
                extra={"event": "verification", "status": "accepted"},
            )
            return VerificationResult(
                subject_id=subject_id,
                is_match=True,
                confidence=best.confidence,
                matched_identity=best.identity,
                verified_at=self._clock(),
            )

        if best.identity != subject_id and best.confidence > self._threshold:
            security_logger.warning(
                "Identity mismatch: claimed %s but sample matched %s (confidence %.5f)",
                subject_id,
                best.identity,
                best.confidence,
                extra={"event": "verification", "status": "wrong_person"},
            )
            raise WrongPersonError(subject_id, best.identity, best.confidence)

        logger.info(
            "Rejected %s: best match %s with confidence %.5f below %.3f",
            subject_id,
            best.identity,
            best.confidence,
            self._threshold,
            extra={"event": "verification", "status": "low_confidence"},
        )
        raise LowConfidenceError(best.confidence, best.identity)
