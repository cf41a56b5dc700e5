import os


def get_settings_module() -> str:
    # APP_ENV selects the settings module, development by default
    env = os.getenv("APP_ENV", "development").lower()

    if env in {"prod", "production"}:
        return "face_attendance.config.production"

    if env in {"test", "testing"}:
        return "face_attendance.config.testing"

    return "face_attendance.config.development"


def env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def env_list(name: str, default: str = "") -> list:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


def office_location_from_env():
    lat = os.getenv("OFFICE_LATITUDE")
    lon = os.getenv("OFFICE_LONGITUDE")
    if not lat or not lon:
        return None
    return {
        "latitude": float(lat),
        "longitude": float(lon),
        "radius_km": float(os.getenv("OFFICE_RADIUS_KM", "0.5")),
    }


def env_weekdays(name: str, default: str = "0,1,2,3,4") -> tuple:
    # Monday=0 ... Sunday=6
    return tuple(int(item) for item in env_list(name, default))
