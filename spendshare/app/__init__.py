"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time, which enables:
           - Multiple isolated test app instances (one per repository backend)
           - `alembic upgrade` and `flask seed-categories` without a server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging levels from LOG_LEVEL
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Build the process-wide InMemoryRepository when LEDGER_REPOSITORY=memory
  5. Register all route blueprints under /api/v1
  6. Register global error handlers (AppError → JSON, Exception → 500)
  7. Register a custom JSON provider to serialise Decimal as string
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

import click
from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from flask.logging import default_handler
from marshmallow import ValidationError as SchemaValidationError
from werkzeug.exceptions import HTTPException

from spendshare.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────
# All monetary amounts leave the API as strings: Decimal("10.50") → "10.50".

class DecimalJSONProvider(DefaultJSONProvider):

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development", overrides: dict | None = None) -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
        overrides:   Config values applied on top of the class, e.g.
                     {"LEDGER_REPOSITORY": "memory"} for a test app.
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)
    if overrides:
        app.config.update(overrides)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    from spendshare.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    # Populates SQLAlchemy's MetaData for db.create_all() and Alembic.
    with app.app_context():
        from spendshare.app.models import (  # noqa: F401
            category,
            expense,
            group,
            membership,
            split,
            user,
        )

    _init_repository(app)

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cli(app)
    _register_cors(app)

    app.logger.info(
        "SpendShare app created (config=%s, repository=%s)",
        config_name,
        app.config["LEDGER_REPOSITORY"],
    )
    return app


def _configure_logging(app: Flask) -> None:
    """
    Applies LOG_LEVEL to app.logger and to the `spendshare` logger tree.

    Service and repository modules log through logging.getLogger(__name__);
    they share Flask's default stderr handler.
    """
    level = app.config.get("LOG_LEVEL", "INFO")
    app.logger.setLevel(level)

    package_logger = logging.getLogger("spendshare")
    package_logger.setLevel(level)
    package_logger.addHandler(default_handler)  # no-op if already attached


def _init_repository(app: Flask) -> None:
    """
    The memory backend lives for the lifetime of the app object and is
    seeded with the default categories straight away. The SQL backend is
    created per request by get_repository() and seeded by migration 001.
    """
    from spendshare.app.repository import MEMORY_EXTENSION_KEY

    backend = app.config["LEDGER_REPOSITORY"]
    if backend == "memory":
        from spendshare.app.repository.memory import InMemoryRepository
        from spendshare.app.seed import seed_categories

        repository = InMemoryRepository()
        seed_categories(repository)
        app.extensions[MEMORY_EXTENSION_KEY] = repository
    elif backend != "sqlalchemy":
        raise ValueError(
            f"LEDGER_REPOSITORY must be 'sqlalchemy' or 'memory', got {backend!r}."
        )


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    The url_prefix is set here so individual route files only specify
    the path relative to their resource (e.g. "/" and "/<int:id>").
    """
    from spendshare.app.routes.auth import auth_bp
    from spendshare.app.routes.balances import balances_bp
    from spendshare.app.routes.categories import categories_bp
    from spendshare.app.routes.expenses import expenses_bp
    from spendshare.app.routes.groups import groups_bp
    from spendshare.app.routes.users import users_bp

    app.register_blueprint(auth_bp,       url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp,      url_prefix="/api/v1/users")
    app.register_blueprint(categories_bp, url_prefix="/api/v1/categories")
    app.register_blueprint(expenses_bp,   url_prefix="/api/v1/expenses")
    app.register_blueprint(groups_bp,     url_prefix="/api/v1/groups")
    app.register_blueprint(balances_bp,   url_prefix="/api/v1/balances")


def _first_schema_error(messages, path: tuple = ()) -> tuple[str | None, str]:
    """
    Walks marshmallow's nested messages to the first leaf message.

    {"splits": {0: {"amount": ["INVALID_AMOUNT"]}}} → ("splits.0.amount", "INVALID_AMOUNT")
    """
    if isinstance(messages, dict):
        for key, value in messages.items():
            sub_path = path if key == "_schema" else path + (str(key),)
            return _first_schema_error(value, sub_path)
    if isinstance(messages, list) and messages:
        return _first_schema_error(messages[0], path)
    field = ".".join(path) if path else None
    return field, str(messages) if messages else "Invalid input."


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

      AppError              → structured JSON error envelope, its own status
      marshmallow errors    → the FIRST error only, 400
      HTTPException         → passed through (404 for unknown URLs, 405, ...)
      Exception             → generic INTERNAL_ERROR (500); traceback logged

    Stack traces never leave the server.
    """
    from spendshare.app.errors import AppError, ErrorCode

    known_codes = set(vars(ErrorCode).values())

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        if error.http_status >= 500:
            app.logger.error("%r", error)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(SchemaValidationError)
    def handle_schema_error(error: SchemaValidationError):
        """
        A message that is itself a registered code (e.g. INVALID_AMOUNT_PRECISION
        raised by a schema validator) is reported as that code.
        """
        field, raw_message = _first_schema_error(error.messages)

        if raw_message in known_codes:
            code = raw_message
            message = _code_to_message(code)
        elif raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
            message = raw_message
        else:
            code = ErrorCode.INVALID_FIELD
            message = raw_message

        body = {"error": {"code": code, "message": message}}
        if field is not None:
            body["error"]["field"] = field
        return jsonify(body), 400

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        if isinstance(error, HTTPException):
            return error

        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _register_cli(app: Flask) -> None:

    @app.cli.command("seed-categories")
    def seed_categories_command():
        """Create the default expense categories if they are missing."""
        from spendshare.app.repository import get_repository
        from spendshare.app.seed import seed_categories

        created = seed_categories(get_repository())
        click.echo(f"Created {len(created)} categor{'y' if len(created) == 1 else 'ies'}.")


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a web client served from another
    local port can call the API with Authorization headers.
    """

    @app.after_request
    def add_cors_headers(response):
        if app.config.get("DEBUG") or app.config.get("TESTING"):
            origin = request.headers.get("Origin")
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
        return response


def _code_to_message(code: str) -> str:
    """Human-readable default message for a code raised as a schema message."""
    _messages = {
        "INVALID_AMOUNT": "Amount must be greater than zero.",
        "INVALID_AMOUNT_PRECISION": "Amount must have at most 2 decimal places.",
        "INVALID_PERIOD": "period must be day, week or month and needs start_date; "
                          "start_date must not be after end_date.",
        "DUPLICATE_SPLIT_USER": "The same user_id appears more than once in the splits array.",
    }
    return _messages.get(code, "Invalid input.")
