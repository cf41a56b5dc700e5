from __future__ import annotations

from typing import Protocol, Sequence

from ..capture.model import Sample
from .model import FaceCandidate, RecognitionMatch


class Recognizer(Protocol):
    """Narrow contract of the external face recognition service.

    Network faults (timeouts, connection errors, 4xx/5xx) are raised as
    TransientError by implementations.
    """

    def detect(self, sample: Sample) -> Sequence[FaceCandidate]:
        raise NotImplementedError

    def enroll(self, subject_id: str, sample: Sample) -> str:
        raise NotImplementedError

    def recognize(self, sample: Sample) -> Sequence[RecognitionMatch]:
        raise NotImplementedError
