from __future__ import annotations

import csv
import io
import logging
from datetime import date, timedelta
from functools import wraps
from typing import Optional

from flask import Flask, jsonify, request, session

from ..capture.device import ExclusiveDeviceGuard
from ..capture.session import CaptureSessionController
from ..capture.upload_device import UploadedImageDevice
from ..common.datetime_utils import parse_iso_date
from ..core import constants
from ..core.enums import ErrorKind
from ..core.exceptions import DomainError, RateLimitedError, ValidationError
from ..container import Container
from .messages import user_message
from .model import AttendanceRecord, CheckEvent
from .service import AttemptResult

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.OUTSIDE_WINDOW: 403,
    ErrorKind.PRESENCE_DENIED: 403,
    ErrorKind.NOT_CHECKED_IN_YET: 409,
    ErrorKind.DEVICE_UNAVAILABLE: 400,
    ErrorKind.CAPTURE_FAILED: 400,
    ErrorKind.INVALID_TRANSITION: 400,
    ErrorKind.NO_FACE_DETECTED: 422,
    ErrorKind.MULTIPLE_FACES_DETECTED: 422,
    ErrorKind.LOW_CONFIDENCE: 422,
    ErrorKind.WRONG_PERSON: 422,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.TRANSIENT: 503,
}

REPORT_CSV_FIELDS = [
    "work_date",
    "subject_id",
    "status",
    "check_in",
    "check_out",
    "late",
    "early",
    "worked_hours",
]


def event_to_dict(event: Optional[CheckEvent]) -> Optional[dict]:
    if event is None:
        return None
    return {
        "time": event.time.isoformat(),
        "confidence": event.confidence,
        "verified": event.verified,
        "late_or_early": event.late_or_early,
        "method": event.method.value,
        "device": event.device,
    }


def record_to_dict(record: Optional[AttendanceRecord]) -> Optional[dict]:
    if record is None:
        return None
    return {
        "subject_id": record.subject_id,
        "work_date": record.work_date.strftime("%Y-%m-%d"),
        "check_in": event_to_dict(record.check_in),
        "check_out": event_to_dict(record.check_out),
        "is_late": record.is_late,
        "is_early": record.is_early,
        "duration_minutes": record.duration_minutes,
    }


def register(app: Flask, container: Container) -> None:
    def login_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return jsonify({"success": False, "message": "Please log in to continue."}), 401
            return view(*args, **kwargs)

        return wrapper

    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        status = _STATUS_BY_KIND.get(exc.kind, 400)
        body = {
            "success": False,
            "kind": exc.kind.value,
            "message": user_message(exc),
            "retryable": exc.retryable,
        }
        if isinstance(exc, RateLimitedError):
            body["retry_after"] = round(exc.retry_after, 3)
        logger.info("Request failed with %s: %s", exc.kind.value, exc, extra={"event": "http_error", "status": status})
        return jsonify(body), status

    def _subject_id() -> str:
        return str(session["user_id"])

    def _json_body() -> dict:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("request body must be a JSON object")
        return data

    def _image_session(data: dict) -> CaptureSessionController:
        image = data.get("image")
        if not isinstance(image, str) or not image.strip():
            raise ValidationError("image is required")
        device = UploadedImageDevice(image, name=f"upload:{_subject_id()}")
        return CaptureSessionController(
            device,
            guard=ExclusiveDeviceGuard(device.name),
            capture_timeout=container.capture_timeout,
        )

    def _coordinate(data: dict, key: str) -> Optional[float]:
        value = data.get(key)
        if value is None or value == "":
            return None
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"{key} must be a number") from exc

    def _attestor(data: dict):
        return container.presence.for_request(
            address=request.remote_addr,
            latitude=_coordinate(data, "latitude"),
            longitude=_coordinate(data, "longitude"),
        )

    def _attempt_response(result: AttemptResult):
        verb = "Check-in" if result.action.value == "check-in" else "Check-out"
        message = f"{verb} already recorded today." if result.already_recorded else f"{verb} recorded."
        body = {
            "success": True,
            "action": result.action.value,
            "already_recorded": result.already_recorded,
            "message": message,
            "record": record_to_dict(result.record),
        }
        if result.verification is not None:
            body["confidence"] = result.verification.confidence
        return jsonify(body), 200

    def _report_range() -> tuple[date, date]:
        today = container.clock().date()
        start_s = request.args.get("start")
        end_s = request.args.get("end")
        try:
            end = parse_iso_date(end_s) if end_s else today
            start = parse_iso_date(start_s) if start_s else end - timedelta(days=constants.DEFAULT_REPORT_DAYS - 1)
        except ValueError as exc:
            raise ValidationError("dates must use the YYYY-MM-DD format") from exc
        return start, end

    @app.route("/api/attendance/check-in", methods=["POST"], endpoint="api_check_in")
    @login_required
    def api_check_in():
        data = _json_body()
        result = container.coordinator.attempt_check_in(
            _subject_id(),
            sessions=lambda: _image_session(data),
            attestor=_attestor(data),
        )
        return _attempt_response(result)

    @app.route("/api/attendance/check-out", methods=["POST"], endpoint="api_check_out")
    @login_required
    def api_check_out():
        data = _json_body()
        result = container.coordinator.attempt_check_out(
            _subject_id(),
            sessions=lambda: _image_session(data),
            attestor=_attestor(data),
        )
        return _attempt_response(result)

    @app.route("/api/attendance/today", methods=["GET"], endpoint="api_today")
    @login_required
    def api_today():
        record = container.coordinator.today_record(_subject_id())
        return jsonify({"success": True, "record": record_to_dict(record)}), 200

    @app.route("/api/attendance/history", methods=["GET"], endpoint="api_history")
    @login_required
    def api_history():
        try:
            limit = int(request.args.get("limit", constants.DEFAULT_HISTORY_LIMIT))
        except ValueError as exc:
            raise ValidationError("limit must be an integer") from exc
        records = container.coordinator.history(_subject_id(), limit)
        return jsonify({"success": True, "records": [record_to_dict(r) for r in records]}), 200

    @app.route("/api/attendance/report", methods=["GET"], endpoint="api_report")
    @login_required
    def api_report():
        start, end = _report_range()
        report = container.report_aggregator.report(_subject_id(), start, end)
        return (
            jsonify(
                {
                    "success": True,
                    "start": start.strftime("%Y-%m-%d"),
                    "end": end.strftime("%Y-%m-%d"),
                    "records": report.to_rows(),
                    "stats": report.stats.as_dict(),
                }
            ),
            200,
        )

    @app.route("/api/attendance/report.csv", methods=["GET"], endpoint="api_report_csv")
    @login_required
    def api_report_csv():
        start, end = _report_range()
        report = container.report_aggregator.report(_subject_id(), start, end)

        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=REPORT_CSV_FIELDS)
        writer.writeheader()
        for row in report.to_rows():
            writer.writerow(row)

        filename = f"attendance_{start.strftime('%Y%m%d')}_{end.strftime('%Y%m%d')}.csv"
        return app.response_class(
            out.getvalue().encode("utf-8-sig"),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.route("/api/faces/enroll", methods=["POST"], endpoint="api_face_enroll")
    @login_required
    def api_face_enroll():
        data = _json_body()
        with _image_session(data) as capture:
            sample = capture.capture()
        image_id = container.enrollment.enroll(_subject_id(), sample)
        return jsonify({"success": True, "image_id": image_id, "message": "Face registered."}), 200

    @app.route("/api/faces/status", methods=["GET"], endpoint="api_face_status")
    @login_required
    def api_face_status():
        status = container.enrollment.registration_status(_subject_id())
        if status is None:
            return jsonify({"success": True, "registered": None, "message": "Registration status is not available."}), 200
        return (
            jsonify(
                {
                    "success": True,
                    "registered": status.registered,
                    "message": status.message,
                    "face_count": status.face_count,
                }
            ),
            200,
        )
