from typing import Any


class AppError(Exception):
    """
    Base class for errors surfaced to GraphQL clients.

    The GraphQL engine copies ``extensions`` from the original exception into
    the error it reports, so every subclass reaches the client with its
    ``code``.
    """

    code = "INTERNAL_SERVER_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, **details: Any):
        self.message = message or self.default_message
        self.extensions: dict[str, Any] = {"code": self.code, **details}
        super().__init__(self.message)


class Unauthorized(AppError):
    code = "UNAUTHENTICATED"
    default_message = "Unauthorized"


class Forbidden(AppError):
    code = "FORBIDDEN"
    default_message = "Unauthorized access to task"


class NotFound(AppError):
    code = "NOT_FOUND"
    default_message = "Task not found"


class DuplicateEmail(AppError):
    code = "DUPLICATE_EMAIL"
    default_message = "Email already exists"


class InvalidCredentials(AppError):
    code = "INVALID_CREDENTIALS"
    default_message = "Invalid credentials"


class ValidationFailed(AppError):
    code = "BAD_USER_INPUT"
    default_message = "Invalid input"


class InternalError(AppError):
    pass
