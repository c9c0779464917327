# Overview: Maps service-layer exceptions to JSON error responses.

"""
Every error response has the shape {"error": "<message>"} plus optional
"details". The dashboard shows "error" verbatim, so messages are written
for end users.
"""

from flask import current_app, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from .extensions import db
from .services.analytics_service import ReportError
from .services.auth_service import PasswordValidationError
from .services.notification_service import NotificationError
from .validation import ValidationError, ConflictError, NotFoundError


EXCEPTION_STATUS_MAP: dict[type[Exception], int] = {
    ValidationError: 400,
    PasswordValidationError: 400,
    ReportError: 400,
    NotFoundError: 404,
    ConflictError: 409,
}


def _error_body(message: str, details: dict | None = None) -> dict:
    body = {"error": message}
    if details:
        body["details"] = details
    return body


def register_error_handlers(app) -> None:
    for exc_type, status in EXCEPTION_STATUS_MAP.items():
        def handler(e, status=status):
            db.session.rollback()
            return jsonify(_error_body(str(e), getattr(e, "details", None))), status
        app.register_error_handler(exc_type, handler)

    @app.errorhandler(NotificationError)
    def handle_notification_error(e):
        return jsonify(_error_body(str(e))), e.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        db.session.rollback()
        current_app.logger.warning("Integrity error: %s", e.orig)
        return jsonify(_error_body("Conflicts with existing data")), 409

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify(_error_body(e.description or e.name)), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        db.session.rollback()
        current_app.logger.exception("Unhandled error")
        return jsonify(_error_body("Internal server error")), 500
