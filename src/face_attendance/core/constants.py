"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_HISTORY_LIMIT = 30
DEFAULT_REPORT_DAYS = 30

DEFAULT_CHECK_IN_OPEN = "09:00"
DEFAULT_CHECK_IN_CLOSE = "10:00"
DEFAULT_CHECK_OUT_OPEN = "17:00"
DEFAULT_CHECK_OUT_CLOSE = "18:00"
DEFAULT_LATE_THRESHOLD_MINUTES = 0
DEFAULT_EARLY_THRESHOLD_MINUTES = 0

DEFAULT_MATCH_THRESHOLD = 0.975
DEFAULT_MIN_VERIFICATION_INTERVAL_SECONDS = 3.0
DEFAULT_DET_PROB_THRESHOLD = 0.8
DEFAULT_RECOGNIZER_TIMEOUT_SECONDS = 10.0
DEFAULT_CAPTURE_TIMEOUT_SECONDS = 5.0
DEFAULT_JPEG_QUALITY = 90

# Monday=0 ... Sunday=6
DEFAULT_WORKING_WEEKDAYS = (0, 1, 2, 3, 4)
