from __future__ import annotations

import base64
import binascii
from typing import Optional, Union

import cv2
import numpy as np

from ..common.datetime_utils import now_local
from ..core.exceptions import CaptureFailedError
from .model import Sample
from .opencv_device import encode_jpeg


def decode_data_uri(payload: str) -> bytes:
    """Decode ``data:image/...;base64,<...>`` (or bare base64) into bytes."""
    if not payload:
        raise CaptureFailedError("empty image payload")
    encoded = payload.split(",", 1)[1] if payload.startswith("data:") else payload
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CaptureFailedError("image payload is not valid base64") from exc


def normalize_image(raw: bytes) -> bytes:
    """Decode any image format OpenCV understands and re-encode it as 3-channel JPEG."""
    arr = np.frombuffer(raw, np.uint8)
    img = cv2.imdecode(arr, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise CaptureFailedError("image payload could not be decoded")

    if len(img.shape) == 3 and img.shape[2] == 4:
        img = cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
    elif len(img.shape) == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)

    return encode_jpeg(np.ascontiguousarray(img, dtype=np.uint8))


class UploadedImageDevice:
    """Still image captured client-side (browser webcam) and posted with the request."""

    def __init__(self, payload: Union[str, bytes], *, name: Optional[str] = None):
        self.name = name or "upload"
        self._payload = payload
        self._opened = False

    def open(self) -> None:
        self._opened = True

    def read(self, timeout: float) -> Sample:
        if not self._opened:
            raise CaptureFailedError("upload device is not open")
        raw = self._payload if isinstance(self._payload, bytes) else decode_data_uri(self._payload)
        return Sample(data=normalize_image(raw), content_type="image/jpeg", captured_at=now_local(), device=self.name)

    def close(self) -> None:
        self._opened = False
