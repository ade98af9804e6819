"""Exception taxonomy for the marketplace API.

Every error a service raises derives from GrocerError and carries the HTTP
status it maps to, so the app needs a single handler to render them.
"""


class GrocerError(Exception):
    """Base exception for all marketplace errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(GrocerError):
    """Raised when input is missing or malformed."""

    status_code = 400


class MissingFieldError(ValidationError):
    """Raised when a required field is absent from a payload."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required field: {field}")


class InvalidIdError(ValidationError):
    """Raised when an identifier is not a valid ObjectId."""

    def __init__(self, value: str, label: str = "id"):
        self.value = value
        super().__init__(f"Invalid {label}: {value}")


class UnauthenticatedError(GrocerError):
    """Raised when a credential is missing, invalid or expired."""

    status_code = 401


class ForbiddenError(GrocerError):
    """Raised when the caller is authenticated but not allowed."""

    status_code = 403


class NotFoundError(GrocerError):
    """Raised when an entity is absent or not owned by the caller."""

    status_code = 404


class ConflictError(GrocerError):
    """Raised on duplicate unique keys and disallowed state changes."""

    status_code = 409


class InternalError(GrocerError):
    """Raised when the store or another dependency fails unexpectedly."""

    status_code = 500
