from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from .attendance.controller import register as register_attendance
from .common.http import EXTENSION_KEY, register_error_handlers, register_request_logging
from .config import get_settings_module
from .container import Container, build_container
from .core.constants import DEFAULT_MAX_PHOTO_BYTES, DEFAULT_PER_PAGE, DEFAULT_TOKEN_MAX_AGE
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables
from .policies.controller import register as register_policies
from .requests.controller import register as register_requests
from .users.controller import register as register_users

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    logging.getLogger("presence_tracker").setLevel(level)


def create_app(container: Optional[Container] = None, settings_module: Optional[str] = None) -> Flask:
    """Application factory.

    Tests pass a container built from in-memory repositories; no database
    bootstrap happens in that case.
    """

    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    _configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.config["UPLOAD_FOLDER"] = getattr(settings, "UPLOAD_FOLDER", str(PROJECT_ROOT / "storage" / "uploads"))
    app.config["MAX_PHOTO_BYTES"] = int(getattr(settings, "MAX_PHOTO_BYTES", DEFAULT_MAX_PHOTO_BYTES))
    app.config["DEFAULT_PER_PAGE"] = int(getattr(settings, "DEFAULT_PER_PAGE", DEFAULT_PER_PAGE))
    app.config["TOKEN_MAX_AGE"] = int(getattr(settings, "TOKEN_MAX_AGE", DEFAULT_TOKEN_MAX_AGE))

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )

        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config, schema_path=PROJECT_ROOT / "database" / "schema.sql")
            logger.info("schema ready (tables=%s)", len(list_tables(db_config)))
        if bool(getattr(settings, "AUTO_SEED_DB", False)):
            apply_seed_sql(db_config, seed_path=PROJECT_ROOT / "database" / "seed.sql")
            ensure_demo_users(db_config)
            logger.info("demo seed ready")

        container = build_container(
            db_config=db_config,
            secret_key=app.secret_key,
            upload_folder=app.config["UPLOAD_FOLDER"],
            max_photo_bytes=app.config["MAX_PHOTO_BYTES"],
            token_max_age=app.config["TOKEN_MAX_AGE"],
            connect_timeout=int(getattr(settings, "DB_CONNECT_TIMEOUT", 10)),
            statement_timeout_ms=int(getattr(settings, "DB_STATEMENT_TIMEOUT_MS", 5000)),
            lock_wait_timeout=int(getattr(settings, "DB_LOCK_WAIT_TIMEOUT", 5)),
        )

    app.extensions[EXTENSION_KEY] = container

    register_error_handlers(app)
    register_request_logging(app)

    register_users(app, container)
    register_policies(app, container)
    register_attendance(app, container)
    register_requests(app, container)

    return app
