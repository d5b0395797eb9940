# backend/opsdesk/__init__.py
from flask import Flask
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import ErrorKind, classify_exception, err, error_response
from .extensions import db, migrate


HTTP_ERROR_KINDS = {
    400: ErrorKind.VALIDATION,
    401: ErrorKind.AUTHENTICATION,
    403: ErrorKind.AUTHORIZATION,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
}


def create_app(config_overrides: dict | None = None, publisher=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions (engine options are read here)
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    if publisher is None:
        from .services.event_service import LoggingPublisher
        publisher = LoggingPublisher(app.logger)
    app.extensions["opsdesk.publisher"] = publisher

    from .middleware import register_request_hooks
    register_request_hooks(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.quotes import quotes_bp
    from .routes.invoices import invoices_bp
    from .routes.admin import admin_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(quotes_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(admin_bp)

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        kind = HTTP_ERROR_KINDS.get(exc.code, ErrorKind.UNKNOWN)
        return error_response(err(kind, exc.description or exc.name, status=exc.code))

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(exc: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception("Unhandled database error")
        return error_response(classify_exception(exc))

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        app.logger.exception("Unhandled error")
        return error_response(classify_exception(exc))

    @app.teardown_request
    def rollback_on_error(exc):
        if exc is not None:
            db.session.rollback()

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app

