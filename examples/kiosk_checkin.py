"""Example: check in from a local camera without going through Flask.

    APP_ENV=development CAMERA_SOURCE=0 python examples/kiosk_checkin.py alice
"""

import argparse
import importlib
import logging

from dotenv import load_dotenv

from face_attendance.attendance.messages import user_message
from face_attendance.config import get_settings_module
from face_attendance.container import build_container
from face_attendance.core.exceptions import DomainError
from face_attendance.main import configure_logging
from face_attendance.presence.attestor import BypassPresenceAttestor

logger = logging.getLogger("face_attendance.examples.kiosk")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("subject_id")
    parser.add_argument("--check-out", action="store_true")
    args = parser.parse_args()

    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    container = build_container(settings)

    # The kiosk itself stands in the office.
    attempt = container.coordinator.attempt_check_out if args.check_out else container.coordinator.attempt_check_in
    try:
        result = attempt(args.subject_id, attestor=BypassPresenceAttestor())
    except DomainError as exc:
        logger.error("%s", user_message(exc))
        raise SystemExit(1)
    logger.info("%s: %s (already recorded=%s)", args.subject_id, result.action.value, result.already_recorded)


if __name__ == "__main__":
    main()
