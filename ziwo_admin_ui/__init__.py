"""Ziwo Admin UI application factory."""

from __future__ import annotations

from logging import getLogger
import os
import secrets

from flask import Flask

from .config import PROJECT_ROOT, load_environment
from .logging import configure_logging
from .routes import auth, exports, main, resources


def create_app() -> Flask:
    """Create and configure the Flask application."""
    load_environment()
    configure_logging()

    app = Flask(
        __name__,
        template_folder=str(PROJECT_ROOT / "templates"),
        static_folder=str(PROJECT_ROOT / "static"),
    )

    secret_key = os.getenv("ZIWO_UI_SECRET_KEY")
    if not secret_key:
        getLogger(__name__).warning(
            "ZIWO_UI_SECRET_KEY not set; sessions will not survive a restart"
        )
        secret_key = secrets.token_hex(32)
    app.secret_key = secret_key
    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
    )

    app.register_blueprint(main.bp)
    app.register_blueprint(auth.bp)
    app.register_blueprint(resources.bp)
    app.register_blueprint(exports.bp)

    return app
