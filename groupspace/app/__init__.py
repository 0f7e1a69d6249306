"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - Alembic to load the model metadata without starting the server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging from LOG_LEVEL
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Register all route blueprints under /api/v1
  5. Register global error handlers (AppError → JSON, Exception → 500)

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic or db.create_all() inspects it.
"""

from __future__ import annotations

import logging
import traceback

from flask import Flask, jsonify, request
from marshmallow import ValidationError

from groupspace.config import config_by_name, validate_production_config


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
                     Defaults to "development".
    """
    app = Flask(__name__)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from groupspace.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    with app.app_context():
        from groupspace.app.models import (  # noqa: F401
            comment,
            discussion,
            file,
            group,
            invitation,
            join_request,
            membership,
            resource,
            user,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_request_logging(app)
    _register_cors(app)

    return app


def _configure_logging(app: Flask) -> None:
    """
    Applies LOG_LEVEL to the app logger and to the groupspace.* service
    loggers, which propagate to the root handler.
    """
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    if not logging.getLogger().handlers:
        logging.basicConfig(
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )

    app.logger.setLevel(level)
    logging.getLogger("groupspace").setLevel(level)


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    The url_prefix is set here so individual route files only specify
    the path relative to their resource (e.g. "/" and "/<int:id>").
    """
    from groupspace.app.routes.discussions import discussions_bp
    from groupspace.app.routes.groups import groups_bp
    from groupspace.app.routes.resources import resources_bp
    from groupspace.app.routes.users import users_bp

    app.register_blueprint(groups_bp,      url_prefix="/api/v1/groups")
    app.register_blueprint(discussions_bp, url_prefix="/api/v1/groups")
    # resources_bp owns BOTH /resources/... and /groups/<id>/files, so it
    # is registered at /api/v1 rather than /api/v1/resources.
    app.register_blueprint(resources_bp,   url_prefix="/api/v1")
    app.register_blueprint(users_bp,       url_prefix="/api/v1/users")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP status
      ValidationError → marshmallow schema errors as MISSING_FIELD /
                        INVALID_REQUEST responses (400)
      Exception       → generic INTERNAL_ERROR (500); traceback to the app logger

    Every handler rolls back the request's session first, so a failed
    request never leaves a half-applied unit of work behind.
    Stack traces never leave the server.
    """
    from groupspace.app.errors import AppError, ErrorCode, ErrorKind
    from groupspace.app.extensions import db

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, service, route) into the standard error envelope.

        Routes never catch AppError — they let it propagate here.
        """
        db.session.rollback()
        if error.http_status >= 500:
            app.logger.error("%r on %s %s", error, request.method, request.path)
        else:
            app.logger.info(
                "%s %s → %s %s", request.method, request.path, error.http_status, error.code,
            )
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Converts marshmallow ValidationError into the standard error envelope.

        Only the FIRST failing field is reported: one error, not many.
        """
        db.session.rollback()

        field, raw_message = _first_validation_error(error.messages)
        if raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
        else:
            code = ErrorCode.INVALID_REQUEST

        response_body = {
            "error": {
                "code": code,
                "kind": ErrorKind.INVALID_REQUEST,
                "message": raw_message,
            }
        }
        if field is not None:
            response_body["error"]["field"] = field

        return jsonify(response_body), 400

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.

        HTTP exceptions raised by Flask itself (404 for an unknown URL,
        405 for a wrong method) keep their own status code.
        """
        from werkzeug.exceptions import HTTPException

        db.session.rollback()

        if isinstance(error, HTTPException) and error.code < 500:
            kind = ErrorKind.NOT_FOUND if error.code == 404 else ErrorKind.INVALID_REQUEST
            return jsonify({
                "error": {
                    "code": ErrorCode.INVALID_REQUEST,
                    "kind": kind,
                    "message": error.description,
                }
            }), error.code

        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "kind": ErrorKind.INTERNAL,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _first_validation_error(messages) -> tuple[str | None, str]:
    """
    Flattens marshmallow's messages into (field, message) for the first error.

    e.g. {"name": ["Missing data for required field."]} → ("name", "Missing ...")
    """
    if isinstance(messages, dict):
        for field_name, field_errors in messages.items():
            field = field_name if field_name != "_schema" else None
            if isinstance(field_errors, list):
                return field, str(field_errors[0]) if field_errors else "Invalid value."
            if isinstance(field_errors, dict):
                _, nested = _first_validation_error(field_errors)
                return field, nested
            return field, str(field_errors)
    elif isinstance(messages, list) and messages:
        return None, str(messages[0])
    return None, "Invalid input."


def _register_request_logging(app: Flask) -> None:
    """One DEBUG line per request. The query string is left out (it may carry a password)."""

    @app.after_request
    def log_request(response):
        app.logger.debug("%s %s → %s", request.method, request.path, response.status_code)
        return response


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a frontend served from another
    local port can call the API with Authorization headers.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"

        return response
