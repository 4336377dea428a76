"""Application error taxonomy and translation of database errors."""

from sqlalchemy.exc import DBAPIError

# PostgreSQL SQLSTATE codes reported by the store
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
CHECK_VIOLATION = "23514"
INSUFFICIENT_PRIVILEGE = "42501"
NUMERIC_VALUE_OUT_OF_RANGE = "22003"

# SQLite reports constraint failures by message only (local/test databases)
_SQLITE_MESSAGES = {
    "unique constraint failed": UNIQUE_VIOLATION,
    "foreign key constraint failed": FOREIGN_KEY_VIOLATION,
    "check constraint failed": CHECK_VIOLATION,
}


class AppError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation error"


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class PermissionDeniedError(AppError):
    status_code = 403
    code = "PERMISSION_DENIED"
    default_message = "Permission denied"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class ReferenceViolationError(AppError):
    status_code = 400
    code = "REFERENCE_VIOLATION"
    default_message = "Invalid reference to related resource"


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMITED"
    default_message = "Rate limit exceeded"


class StorageError(AppError):
    status_code = 502
    code = "STORAGE_ERROR"
    default_message = "Object storage request failed"


def sqlstate_of(exc: DBAPIError) -> str | None:
    """Return the SQLSTATE reported for a driver error, if any."""
    orig = getattr(exc, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return code

    message = str(orig).lower()
    for fragment, code in _SQLITE_MESSAGES.items():
        if fragment in message:
            return code
    return None


def translate_db_error(exc: DBAPIError) -> AppError | None:
    """Map a store error onto the taxonomy. Returns None when unmapped."""
    code = sqlstate_of(exc)
    if code == UNIQUE_VIOLATION:
        return ConflictError()
    if code == FOREIGN_KEY_VIOLATION:
        return ReferenceViolationError()
    if code == CHECK_VIOLATION:
        return ValidationError("Value violates a data constraint")
    if code == NUMERIC_VALUE_OUT_OF_RANGE:
        return ValidationError("Numeric value out of range")
    if code == INSUFFICIENT_PRIVILEGE:
        return PermissionDeniedError()
    return None
