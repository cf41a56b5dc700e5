from __future__ import annotations

import logging
from typing import Optional

from ..capture.model import Sample
from ..core.exceptions import MultipleFacesDetectedError, NoFaceDetectedError
from .model import RegistrationStatus
from .recognizer import Recognizer

logger = logging.getLogger(__name__)


class FaceEnrollmentService:
    """Registers a subject's reference face; requires exactly one face in the sample."""

    def __init__(self, recognizer: Recognizer):
        self._recognizer = recognizer

    def enroll(self, subject_id: str, sample: Sample) -> str:
        faces = self._recognizer.detect(sample)
        if not faces:
            raise NoFaceDetectedError("no face detected; keep your face clearly visible")
        if len(faces) > 1:
            raise MultipleFacesDetectedError(len(faces))

        image_id = self._recognizer.enroll(subject_id, sample)
        logger.info("Subject %s enrolled (image %s)", subject_id, image_id, extra={"event": "enroll"})
        return image_id

    def registration_status(self, subject_id: str) -> Optional[RegistrationStatus]:
        """Registration status if the recognizer can report it, else None."""
        status = getattr(self._recognizer, "registration_status", None)
        if status is None:
            return None
        return status(subject_id)
