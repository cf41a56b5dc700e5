from __future__ import annotations

import importlib
import logging

from dotenv import load_dotenv

from face_attendance.config import get_settings_module
from face_attendance.database.bootstrap import apply_schema, list_tables
from face_attendance.main import SCHEMA_PATH, configure_logging

logger = logging.getLogger("face_attendance.scripts.init_db")


def main() -> None:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    db_config = dict(settings.DB_CONFIG)

    count = apply_schema(db_config, schema_path=SCHEMA_PATH)
    tables = list_tables(db_config)
    logger.info(
        "Applied %d statements -> %s@%s:%s/%s (tables=%d)",
        count,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
        len(tables),
    )


if __name__ == "__main__":
    main()
