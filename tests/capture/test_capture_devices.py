from __future__ import annotations

import base64

import cv2
import numpy as np
import pytest

from face_attendance.capture import opencv_device
from face_attendance.capture.opencv_device import OpenCVCamera
from face_attendance.capture.upload_device import UploadedImageDevice, decode_data_uri
from face_attendance.core.exceptions import CaptureFailedError, DeviceUnavailableError


def _png_data_uri(channels: int = 3) -> str:
    img = np.zeros((16, 16, channels), dtype=np.uint8)
    img[4:12, 4:12] = 200
    ok, buf = cv2.imencode(".png", img)
    assert ok
    return "data:image/png;base64," + base64.b64encode(buf.tobytes()).decode("ascii")


@pytest.mark.parametrize("channels", [3, 4])
def test_uploaded_image_is_normalized_to_jpeg(channels):
    device = UploadedImageDevice(_png_data_uri(channels), name="upload:alice")

    device.open()
    sample = device.read(timeout=1.0)
    device.close()

    assert sample.content_type == "image/jpeg"
    assert sample.data[:2] == b"\xff\xd8"
    assert sample.device == "upload:alice"
    decoded = cv2.imdecode(np.frombuffer(sample.data, np.uint8), cv2.IMREAD_UNCHANGED)
    assert decoded.shape[2] == 3


def test_uploaded_image_rejects_garbage():
    device = UploadedImageDevice("data:image/png;base64," + base64.b64encode(b"not an image").decode())
    device.open()

    with pytest.raises(CaptureFailedError):
        device.read(timeout=1.0)


def test_decode_data_uri_rejects_invalid_base64():
    with pytest.raises(CaptureFailedError):
        decode_data_uri("data:image/png;base64,@@@")


def test_upload_read_requires_open():
    with pytest.raises(CaptureFailedError):
        UploadedImageDevice(_png_data_uri()).read(timeout=1.0)


class FakeVideoCapture:
    def __init__(self, source, *, opened=True, frames=()):
        self.source = source
        self._opened = opened
        self._frames = list(frames)
        self.released = False
        self.props = {}

    def isOpened(self):
        return self._opened

    def set(self, prop, value):
        self.props[prop] = value

    def read(self):
        if self._frames:
            return True, self._frames.pop(0)
        return False, None

    def release(self):
        self.released = True


def test_opencv_camera_reads_frame_and_releases(monkeypatch):
    frame = np.full((8, 8, 3), 127, dtype=np.uint8)
    created = []

    def factory(source):
        cap = FakeVideoCapture(source, frames=[frame])
        created.append(cap)
        return cap

    monkeypatch.setattr(opencv_device.cv2, "VideoCapture", factory)
    camera = OpenCVCamera(0, retry_delay=0)

    camera.open()
    sample = camera.read(timeout=0.5)
    camera.close()

    assert sample.device == "camera:0"
    assert sample.data[:2] == b"\xff\xd8"
    assert created[0].released is True


def test_opencv_camera_unavailable(monkeypatch):
    created = []

    def factory(source):
        cap = FakeVideoCapture(source, opened=False)
        created.append(cap)
        return cap

    monkeypatch.setattr(opencv_device.cv2, "VideoCapture", factory)

    with pytest.raises(DeviceUnavailableError):
        OpenCVCamera(1).open()
    assert created[0].released is True


def test_opencv_camera_read_times_out(monkeypatch):
    monkeypatch.setattr(opencv_device.cv2, "VideoCapture", lambda source: FakeVideoCapture(source))
    camera = OpenCVCamera(0, retry_delay=0)
    camera.open()

    with pytest.raises(CaptureFailedError):
        camera.read(timeout=0.0)
    camera.close()
