"""Flask application factory."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

from member_onboarding.core import get_settings
from member_onboarding.core.settings import AppSettings
from member_onboarding.models import db
from member_onboarding.seeds import seed_transitions
from member_onboarding.services import (
    WorkflowNotificationService,
    build_identity_provider,
)

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)


def _ensure_instance_path(app: Flask) -> None:
    try:
        os.makedirs(app.instance_path, exist_ok=True)
    except OSError:
        pass


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger().setLevel(level.upper())


def create_app(settings: Optional[AppSettings] = None) -> Flask:
    """Create and configure Flask application."""
    app = Flask(__name__, instance_relative_config=True)

    settings = settings or get_settings()
    app.config.update(settings.as_flask_config())
    app.config["APP_SETTINGS"] = settings
    _configure_logging(settings.log_level)

    # Ensure instance folder exists
    _ensure_instance_path(app)

    # Initialize extensions
    db.init_app(app)
    CORS(app)

    # Workflow collaborators shared across requests
    app.config["NOTIFICATION_SERVICE"] = WorkflowNotificationService(settings)
    app.config["IDENTITY_PROVIDER"] = build_identity_provider(settings)

    # Register blueprints
    from member_onboarding.api import api_bp

    app.register_blueprint(api_bp)

    # Database initialization command
    @app.cli.command("init-db")
    def init_db():
        """Create tables and seed the default approval ladder."""
        with app.app_context():
            db.create_all()
            click.echo("✓ Database initialized successfully")

            inserted = seed_transitions(db)
            click.echo(f"✓ {inserted} workflow transition(s) added")

    # Error handlers
    @app.errorhandler(404)
    def not_found(e):
        """Handle 404 errors."""
        return {"error": "Resource not found"}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        """Handle 405 errors."""
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def server_error(e):
        """Handle 500 errors."""
        db.session.rollback()
        return {"error": "Internal server error"}, 500

    return app
