"""Error taxonomy shared by the services and the HTTP layer.

Services raise these; ``register_error_handlers`` turns them into JSON
responses. Every error is raised before anything is committed, so the caller
can always assume the operation had no effect.
"""

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from library_api.extensions import db


class LibraryError(Exception):
    status_code = 500
    kind = "error"

    def __init__(self, message: str, book_id=None):
        super().__init__(message)
        self.message = message
        self.book_id = book_id

    def to_dict(self) -> dict:
        payload = {"success": False, "error": self.kind, "message": self.message}
        if self.book_id is not None:
            payload["bookId"] = self.book_id
        return payload


class ValidationError(LibraryError):
    """Malformed or empty request; the caller has to fix the input."""

    status_code = 400
    kind = "validation_error"


class AuthenticationError(LibraryError):
    status_code = 401
    kind = "authentication_error"


class PermissionDeniedError(LibraryError):
    status_code = 403
    kind = "permission_denied"


class NotFoundError(LibraryError):
    status_code = 404
    kind = "not_found"


class ConflictError(LibraryError):
    """Insufficient stock or a transition that the current status forbids."""

    status_code = 409
    kind = "conflict"


class StorageError(LibraryError):
    """The database failed mid-operation; everything was rolled back and the
    caller may retry unchanged."""

    status_code = 503
    kind = "storage_error"


def register_error_handlers(app):
    @app.errorhandler(LibraryError)
    def _library_error(e: LibraryError):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def _storage_error(e: SQLAlchemyError):
        # reads run outside unit_of_work; the session may hold a broken transaction
        db.session.rollback()
        app.logger.exception(f"[db] unhandled storage error: {e}")
        return jsonify(StorageError("Storage failure, please retry").to_dict()), StorageError.status_code

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return jsonify({"success": False, "error": "http_error", "message": e.description}), e.code
