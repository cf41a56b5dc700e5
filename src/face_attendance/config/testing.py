import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "face_attendance_test"),
}

STORAGE = "memory"

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

OFFICE_HOURS = {
    "check_in_open": "09:00",
    "check_in_close": "10:00",
    "check_out_open": "17:00",
    "check_out_close": "18:00",
    "late_threshold_minutes": 0,
    "early_threshold_minutes": 0,
}
ENFORCE_OFFICE_HOURS = True

PRESENCE_MODE = "network"
ALLOWED_NETWORKS = ["127.0.0.0/8"]
OFFICE_LOCATION = None

COMPREFACE = {
    "base_url": "http://compreface.test",
    "recognition_key": "test-recognition-key",
    "detection_key": "test-detection-key",
    "timeout": 2.0,
    "det_prob_threshold": 0.8,
}
MATCH_THRESHOLD = 0.975
MIN_VERIFICATION_INTERVAL_SECONDS = 3.0

CAPTURE_TIMEOUT_SECONDS = 1.0
CAMERA_SOURCE = ""

REQUIRE_CHECK_OUT_FOR_PRESENCE = False
WORKING_WEEKDAYS = (0, 1, 2, 3, 4)

AUTO_INIT_DB = False
