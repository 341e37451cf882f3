"""
Stand-in call-center API used as a local load and query target.

Provides the ``create_app`` factory for a small Flask service that mimics
the surface the harness exercises: a login issuing a bearer token and the
paginated read endpoints listed in :mod:`harness.scenarios`. Its
Flask-SQLAlchemy models double as the record store behind the query
benchmark.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from flask import Flask
from flask_sqlalchemy import SQLAlchemy

from config import get_config

# Initialize SQLAlchemy without binding to app
db = SQLAlchemy()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _ensure_sqlite_db_parent_exists(database_uri: str) -> None:
    """Create parent directories for file-based SQLite URIs when missing."""
    sqlite_prefix = "sqlite:///"
    if not database_uri.startswith(sqlite_prefix):
        return

    sqlite_path = database_uri[len(sqlite_prefix) :].split("?", 1)[0]
    if sqlite_path == ":memory:":
        return

    db_parent = Path(sqlite_path).parent
    db_parent.mkdir(parents=True, exist_ok=True)


def create_app(config_name: str | None = None) -> Flask:
    """
    Create and configure the stand-in target application.

    Args:
        config_name: Configuration environment name. If None, uses the
            HARNESS_ENV environment variable.

    Returns:
        Configured Flask application with tables created and the admin
        operator present.
    """
    app = Flask(__name__, instance_relative_config=True)
    config_class = get_config(config_name)
    app.config.from_object(config_class)

    logger.info("Creating target app with config: %s", config_class.__name__)

    os.makedirs(app.instance_path, exist_ok=True)
    _ensure_sqlite_db_parent_exists(app.config.get("SQLALCHEMY_DATABASE_URI", ""))

    db.init_app(app)

    from target_app.routes.api import api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    with app.app_context():
        db.create_all()
        from target_app.seed import ensure_admin_operator

        ensure_admin_operator(
            app.config["TARGET_ADMIN_LOGIN"],
            app.config["TARGET_ADMIN_PASSWORD"],
        )
        logger.info("Target database tables created")

    return app
