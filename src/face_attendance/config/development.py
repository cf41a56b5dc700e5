import os

from . import env_flag, env_list, env_weekdays, office_location_from_env

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "face_attendance"),
}

# "mysql" or "memory"
STORAGE = os.getenv("STORAGE", "mysql")

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

OFFICE_HOURS = {
    "check_in_open": os.getenv("CHECK_IN_OPEN", "09:00"),
    "check_in_close": os.getenv("CHECK_IN_CLOSE", "10:00"),
    "check_out_open": os.getenv("CHECK_OUT_OPEN", "17:00"),
    "check_out_close": os.getenv("CHECK_OUT_CLOSE", "18:00"),
    "late_threshold_minutes": int(os.getenv("LATE_THRESHOLD_MINUTES", "0")),
    "early_threshold_minutes": int(os.getenv("EARLY_THRESHOLD_MINUTES", "0")),
}
# Development may switch the window check off explicitly.
ENFORCE_OFFICE_HOURS = env_flag("ENFORCE_OFFICE_HOURS", "1")

# "network", "geofence" or "bypass"
PRESENCE_MODE = os.getenv("PRESENCE_MODE", "bypass")
ALLOWED_NETWORKS = env_list("ALLOWED_NETWORKS", "127.0.0.0/8,::1/128,10.0.0.0/8,192.168.0.0/16")
OFFICE_LOCATION = office_location_from_env()

COMPREFACE = {
    "base_url": os.getenv("COMPREFACE_URL", "http://localhost:8000"),
    "recognition_key": os.getenv("COMPREFACE_RECOGNITION_KEY", ""),
    "detection_key": os.getenv("COMPREFACE_DETECTION_KEY", ""),
    "timeout": float(os.getenv("COMPREFACE_TIMEOUT_SECONDS", "10")),
    "det_prob_threshold": float(os.getenv("COMPREFACE_DET_PROB_THRESHOLD", "0.8")),
}
MATCH_THRESHOLD = float(os.getenv("MATCH_THRESHOLD", "0.975"))
MIN_VERIFICATION_INTERVAL_SECONDS = float(os.getenv("MIN_VERIFICATION_INTERVAL_SECONDS", "3"))

CAPTURE_TIMEOUT_SECONDS = float(os.getenv("CAPTURE_TIMEOUT_SECONDS", "5"))
# Local camera index or stream URL for kiosk use; empty means uploads only.
CAMERA_SOURCE = os.getenv("CAMERA_SOURCE", "")

REQUIRE_CHECK_OUT_FOR_PRESENCE = env_flag("REQUIRE_CHECK_OUT_FOR_PRESENCE", "0")
# Days counted in the report denominator, Monday=0 ... Sunday=6.
WORKING_WEEKDAYS = env_weekdays("WORKING_WEEKDAYS")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = env_flag("AUTO_INIT_DB", "1")
