"""Exception hierarchy raised by the service layer.

Services never build HTTP responses themselves.  They raise one of the
errors below and ``main.py`` translates it into a status code and a
``{"code", "message"}`` body.
"""


class KidPointsError(Exception):
    """Base class for all Kid Points specific errors."""

    status_code = 500
    code = "error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(KidPointsError):
    """Raised when input is missing or malformed."""

    status_code = 400
    code = "validation_error"


class AuthorizationError(KidPointsError):
    """Raised when the caller is authenticated but not allowed to act."""

    status_code = 403
    code = "forbidden"


class NotFoundError(KidPointsError):
    """Raised when a referenced record is absent or not visible to the caller."""

    status_code = 404
    code = "not_found"


class ConflictError(KidPointsError):
    """Raised when the current state does not allow the requested change."""

    status_code = 409
    code = "conflict"


class PersistenceError(KidPointsError):
    """Raised when the database fails to commit a change."""

    status_code = 500
    code = "persistence_error"
