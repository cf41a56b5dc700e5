from __future__ import annotations

from datetime import datetime

import pytest

from face_attendance.attendance.policy import OfficeHoursWindow
from face_attendance.capture.model import Sample


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2025, 1, 6, 9, 0, 0)


@pytest.fixture
def office_hours() -> OfficeHoursWindow:
    return OfficeHoursWindow.from_mapping({})


@pytest.fixture
def sample() -> Sample:
    return Sample(data=b"\xff\xd8fake-jpeg\xff\xd9", device="fake-camera")
