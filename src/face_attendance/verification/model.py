from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class BoundingBox:
    x_min: int
    y_min: int
    x_max: int
    y_max: int

    @property
    def width(self) -> int:
        return self.x_max - self.x_min

    @property
    def height(self) -> int:
        return self.y_max - self.y_min


@dataclass(frozen=True)
class FaceCandidate:
    """A detected face (region + detection probability)."""

    box: BoundingBox
    probability: float


@dataclass(frozen=True)
class RecognitionMatch:
    identity: str
    confidence: float


@dataclass(frozen=True)
class VerificationResult:
    subject_id: str
    is_match: bool
    confidence: float
    matched_identity: str
    verified_at: Optional[datetime] = None


@dataclass(frozen=True)
class RegistrationStatus:
    registered: bool
    message: str
    face_count: int = 0
