from __future__ import annotations

import logging
import time
from typing import Optional, Union

import cv2

from ..common.datetime_utils import now_local
from ..core import constants
from ..core.exceptions import CaptureFailedError, DeviceUnavailableError
from .model import Sample

logger = logging.getLogger(__name__)


def encode_jpeg(frame, *, quality: int = constants.DEFAULT_JPEG_QUALITY) -> bytes:
    ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise CaptureFailedError("frame could not be encoded as JPEG")
    return buf.tobytes()


class OpenCVCamera:
    """Local webcam / RTSP stream read through ``cv2.VideoCapture``."""

    def __init__(
        self,
        source: Union[int, str] = 0,
        *,
        width: Optional[int] = 640,
        height: Optional[int] = 480,
        jpeg_quality: int = constants.DEFAULT_JPEG_QUALITY,
        retry_delay: float = 0.05,
    ):
        self.source = source
        self.name = f"camera:{source}"
        self._width = width
        self._height = height
        self._jpeg_quality = jpeg_quality
        self._retry_delay = retry_delay
        self._cap = None

    def open(self) -> None:
        cap = cv2.VideoCapture(self.source)
        if not cap.isOpened():
            cap.release()
            raise DeviceUnavailableError(f"cannot open {self.name}")
        if self._width:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        if self._height:
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        self._cap = cap
        logger.info("Opened %s", self.name, extra={"event": "camera_open"})

    def read(self, timeout: float) -> Sample:
        if self._cap is None:
            raise CaptureFailedError(f"{self.name} is not open")

        deadline = time.monotonic() + max(timeout, 0.0)
        while True:
            ok, frame = self._cap.read()
            if ok and frame is not None:
                return Sample(
                    data=encode_jpeg(frame, quality=self._jpeg_quality),
                    content_type="image/jpeg",
                    captured_at=now_local(),
                    device=self.name,
                )
            if time.monotonic() >= deadline:
                raise CaptureFailedError(f"no frame from {self.name} within {timeout:.1f}s")
            time.sleep(self._retry_delay)

    def close(self) -> None:
        cap, self._cap = self._cap, None
        if cap is not None:
            cap.release()
            logger.info("Released %s", self.name, extra={"event": "camera_release"})
