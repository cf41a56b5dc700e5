"""CompreFace REST client.

Implements the Recognizer contract against a CompreFace server:

- detection service: ``/api/v1/detection/detect``
- recognition service: ``/api/v1/recognition/{subjects,faces,recognize}``

Each service has its own ``x-api-key``. Every transport or HTTP failure is
raised as TransientError, except CompreFace's "no face found" answer which is
an empty result.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import requests

from ..capture.model import Sample
from ..core import constants
from ..core.exceptions import TransientError
from .model import BoundingBox, FaceCandidate, RecognitionMatch, RegistrationStatus
from .recognizer import Recognizer

logger = logging.getLogger(__name__)

# CompreFace error code for "No face is found in the given image".
NO_FACE_ERROR_CODE = 28


class CompreFaceRecognizer(Recognizer):
    def __init__(
        self,
        base_url: str,
        *,
        recognition_key: str,
        detection_key: Optional[str] = None,
        timeout: float = constants.DEFAULT_RECOGNIZER_TIMEOUT_SECONDS,
        det_prob_threshold: float = constants.DEFAULT_DET_PROB_THRESHOLD,
        prediction_count: int = 3,
        session: Optional[requests.Session] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._recognition_key = recognition_key
        self._detection_key = detection_key or recognition_key
        self._timeout = float(timeout)
        self._det_prob_threshold = float(det_prob_threshold)
        self._prediction_count = int(prediction_count)
        self._session = session or requests.Session()

    # -- Recognizer contract ---------------------------------------------

    def detect(self, sample: Sample) -> Sequence[FaceCandidate]:
        data = self._request(
            "POST",
            "/api/v1/detection/detect",
            api_key=self._detection_key,
            params={"limit": 0, "det_prob_threshold": self._det_prob_threshold},
            files=self._files(sample),
        )
        if data is None:
            return []

        faces = []
        for face in data.get("result") or []:
            box = face.get("box") or {}
            faces.append(
                FaceCandidate(
                    box=BoundingBox(
                        x_min=int(box.get("x_min", 0)),
                        y_min=int(box.get("y_min", 0)),
                        x_max=int(box.get("x_max", 0)),
                        y_max=int(box.get("y_max", 0)),
                    ),
                    probability=float(box.get("probability", face.get("probability", 0.0))),
                )
            )
        return faces

    def enroll(self, subject_id: str, sample: Sample) -> str:
        if subject_id not in self.list_subjects():
            self.add_subject(subject_id)

        data = self._request(
            "POST",
            "/api/v1/recognition/faces",
            api_key=self._recognition_key,
            params={"subject": subject_id, "det_prob_threshold": self._det_prob_threshold},
            files=self._files(sample),
        )
        image_id = (data or {}).get("image_id")
        if not image_id:
            raise TransientError("face enrollment returned no image_id")
        logger.info("Enrolled face %s for subject %s", image_id, subject_id, extra={"event": "face_enroll"})
        return str(image_id)

    def recognize(self, sample: Sample) -> Sequence[RecognitionMatch]:
        data = self._request(
            "POST",
            "/api/v1/recognition/recognize",
            api_key=self._recognition_key,
            params={
                "limit": 0,
                "prediction_count": self._prediction_count,
                "det_prob_threshold": self._det_prob_threshold,
            },
            files=self._files(sample),
        )
        if data is None:
            return []

        matches: list[RecognitionMatch] = []
        for face in data.get("result") or []:
            subjects = face.get("subjects") or []
            # Older servers answer with {subject: {similarity: ...}} instead of a list.
            if isinstance(subjects, dict):
                subjects = [{"subject": k, "similarity": (v or {}).get("similarity", 0.0)} for k, v in subjects.items()]
            for entry in subjects:
                matches.append(
                    RecognitionMatch(identity=str(entry.get("subject")), confidence=float(entry.get("similarity", 0.0)))
                )
        return matches

    # -- subject management ----------------------------------------------

    def list_subjects(self) -> list[str]:
        data = self._request("GET", "/api/v1/recognition/subjects", api_key=self._recognition_key)
        return [str(s) for s in (data or {}).get("subjects") or []]

    def add_subject(self, subject_id: str) -> None:
        self._request("POST", "/api/v1/recognition/subjects", api_key=self._recognition_key, json={"subject": subject_id})

    def list_faces(self, subject_id: str) -> list[dict]:
        data = self._request(
            "GET",
            "/api/v1/recognition/faces",
            api_key=self._recognition_key,
            params={"subject": subject_id},
        )
        return list((data or {}).get("faces") or [])

    def registration_status(self, subject_id: str) -> RegistrationStatus:
        if subject_id not in self.list_subjects():
            return RegistrationStatus(registered=False, message="Subject not found in recognizer")
        faces = self.list_faces(subject_id)
        if not faces:
            return RegistrationStatus(registered=False, message="No face examples found for subject")
        return RegistrationStatus(registered=True, message="Face is properly registered", face_count=len(faces))

    # -- transport -------------------------------------------------------

    @staticmethod
    def _files(sample: Sample) -> dict:
        return {"file": (sample.filename, sample.data, sample.content_type)}

    def _request(self, method: str, path: str, *, api_key: str, **kwargs) -> Optional[dict[str, Any]]:
        url = f"{self._base_url}{path}"
        try:
            resp = self._session.request(
                method,
                url,
                headers={"x-api-key": api_key},
                timeout=self._timeout,
                **kwargs,
            )
        except requests.Timeout as exc:
            logger.warning("Recognizer timed out: %s %s", method, path, extra={"event": "recognizer", "status": "timeout"})
            raise TransientError(f"recognizer timed out after {self._timeout:.1f}s") from exc
        except requests.RequestException as exc:
            logger.warning("Recognizer unreachable: %s", exc, extra={"event": "recognizer", "status": "unreachable"})
            raise TransientError(f"recognizer unreachable: {exc}") from exc

        if resp.status_code == 400 and _is_no_face(resp):
            return None
        if resp.status_code >= 400:
            logger.warning(
                "Recognizer returned HTTP %s for %s %s",
                resp.status_code,
                method,
                path,
                extra={"event": "recognizer", "status": resp.status_code},
            )
            raise TransientError(f"recognizer returned HTTP {resp.status_code}")

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as exc:
            raise TransientError("recognizer returned a malformed response") from exc


def _is_no_face(resp) -> bool:
    try:
        body = resp.json()
    except ValueError:
        return False
    return isinstance(body, dict) and body.get("code") == NO_FACE_ERROR_CODE
