from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .attendance.memory_repository import InMemoryAttendanceRepository
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.policy import OfficeHoursWindow, TimeWindowPolicy
from .attendance.repository import AttendanceRecordStore
from .attendance.service import AttendanceCoordinator
from .calendars.mysql_calendar_repository import MySQLHolidayCalendar, MySQLLeaveCalendar
from .calendars.repository import HolidayCalendar, InMemoryHolidayCalendar, InMemoryLeaveCalendar, LeaveCalendar
from .capture.device import ExclusiveDeviceGuard
from .capture.opencv_device import OpenCVCamera
from .capture.session import CaptureSessionController
from .common.datetime_utils import now_local
from .core import constants
from .core.exceptions import ValidationError
from .database.connection import DBConfig, DatabaseConnection
from .presence.attestor import OfficeLocation, PresenceAttestorFactory, parse_networks
from .reports.service import ReportAggregator
from .verification.compreface import CompreFaceRecognizer
from .verification.enrollment import FaceEnrollmentService
from .verification.gateway import VerificationGateway
from .verification.rate_limiter import PerSubjectRateLimiter
from .verification.recognizer import Recognizer


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    attendance_repo: AttendanceRecordStore
    leave_calendar: LeaveCalendar
    holiday_calendar: HolidayCalendar

    recognizer: Recognizer
    rate_limiter: PerSubjectRateLimiter
    gateway: VerificationGateway
    enrollment: FaceEnrollmentService

    policy: TimeWindowPolicy
    presence: PresenceAttestorFactory
    coordinator: AttendanceCoordinator
    report_aggregator: ReportAggregator

    capture_timeout: float
    clock: Callable[[], datetime]


def _camera_sessions(source: str, capture_timeout: float) -> Optional[Callable[[], CaptureSessionController]]:
    if source == "":
        return None
    camera = OpenCVCamera(int(source) if source.isdigit() else source)
    guard = ExclusiveDeviceGuard(camera.name)

    def factory() -> CaptureSessionController:
        return CaptureSessionController(camera, guard=guard, capture_timeout=capture_timeout)

    return factory


def build_container(
    settings,
    *,
    recognizer: Optional[Recognizer] = None,
    clock: Callable = now_local,
) -> Container:
    """Wire every component from a settings module (see ``face_attendance.config``)."""
    storage = str(getattr(settings, "STORAGE", "mysql"))
    if storage == "mysql":
        conn = DatabaseConnection.get_instance(DBConfig.from_mapping(settings.DB_CONFIG))
        attendance_repo = MySQLAttendanceRepository(conn)
        leave_calendar = MySQLLeaveCalendar(conn)
        holiday_calendar = MySQLHolidayCalendar(conn)
    elif storage == "memory":
        conn = None
        attendance_repo = InMemoryAttendanceRepository()
        leave_calendar = InMemoryLeaveCalendar()
        holiday_calendar = InMemoryHolidayCalendar()
    else:
        raise ValidationError(f"unknown storage backend {storage!r}")

    if recognizer is None:
        compreface = dict(settings.COMPREFACE)
        recognizer = CompreFaceRecognizer(
            str(compreface["base_url"]),
            recognition_key=str(compreface["recognition_key"]),
            detection_key=compreface.get("detection_key") or None,
            timeout=float(compreface.get("timeout", constants.DEFAULT_RECOGNIZER_TIMEOUT_SECONDS)),
            det_prob_threshold=float(compreface.get("det_prob_threshold", constants.DEFAULT_DET_PROB_THRESHOLD)),
        )

    rate_limiter = PerSubjectRateLimiter(
        float(getattr(settings, "MIN_VERIFICATION_INTERVAL_SECONDS", constants.DEFAULT_MIN_VERIFICATION_INTERVAL_SECONDS))
    )
    gateway = VerificationGateway(
        recognizer,
        threshold=float(getattr(settings, "MATCH_THRESHOLD", constants.DEFAULT_MATCH_THRESHOLD)),
        rate_limiter=rate_limiter,
        clock=clock,
    )
    enrollment = FaceEnrollmentService(recognizer)

    policy = TimeWindowPolicy(
        OfficeHoursWindow.from_mapping(getattr(settings, "OFFICE_HOURS", {})),
        enforce=bool(settings.ENFORCE_OFFICE_HOURS),
    )

    location = getattr(settings, "OFFICE_LOCATION", None)
    presence = PresenceAttestorFactory(
        mode=str(settings.PRESENCE_MODE),
        allowed_networks=tuple(parse_networks(getattr(settings, "ALLOWED_NETWORKS", ()))),
        office=OfficeLocation(**location) if location else None,
    )

    capture_timeout = float(getattr(settings, "CAPTURE_TIMEOUT_SECONDS", constants.DEFAULT_CAPTURE_TIMEOUT_SECONDS))
    coordinator = AttendanceCoordinator(
        attendance_repo,
        policy,
        gateway,
        capture_sessions=_camera_sessions(str(getattr(settings, "CAMERA_SOURCE", "") or ""), capture_timeout),
        clock=clock,
    )
    report_aggregator = ReportAggregator(
        attendance_repo,
        leave_calendar,
        holiday_calendar,
        require_check_out=bool(getattr(settings, "REQUIRE_CHECK_OUT_FOR_PRESENCE", False)),
        working_weekdays=getattr(settings, "WORKING_WEEKDAYS", constants.DEFAULT_WORKING_WEEKDAYS),
    )

    return Container(
        conn=conn,
        attendance_repo=attendance_repo,
        leave_calendar=leave_calendar,
        holiday_calendar=holiday_calendar,
        recognizer=recognizer,
        rate_limiter=rate_limiter,
        gateway=gateway,
        enrollment=enrollment,
        policy=policy,
        presence=presence,
        coordinator=coordinator,
        report_aggregator=report_aggregator,
        capture_timeout=capture_timeout,
        clock=clock,
    )
