# common/api_error/ApiError.py
from typing import Optional


class AppError(Exception):
    """Base error for all application-specific issues."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "INTERNAL_ERROR",
        fields: Optional[dict[str, list[str]]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.fields = fields
        super().__init__(self.message)

    @property
    def is_retryable(self) -> bool:
        """5xx errors mean 'retry later', 4xx mean the caller must change something."""
        return self.status_code >= 500


class NotFoundError(AppError):
    """A doctor, clinic, patient, booking or rule does not exist."""

    def __init__(self, resource: str, code: str = "NOT_FOUND"):
        super().__init__(f"{resource} not found", status_code=404, code=code)


class ConflictError(AppError):
    """A domain rule rejected the request (409)."""

    def __init__(self, message: str, code: str = "CONFLICT"):
        super().__init__(message, status_code=409, code=code)


class ValidationError(AppError):
    """Malformed input or a missing required field (422)."""

    def __init__(
        self,
        message: str = "Validation failed",
        fields: Optional[dict[str, list[str]]] = None,
        code: str = "VALIDATION_ERROR",
    ):
        super().__init__(message, status_code=422, code=code, fields=fields)


class AuthError(AppError):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status_code=401, code="UNAUTHORIZED")


class ForbiddenError(AppError):
    def __init__(self, message: str, code: str = "FORBIDDEN"):
        super().__init__(message, status_code=403, code=code)


class InternalError(AppError):
    """
    Infrastructure failure surfaced to the caller.

    The message stays generic; the real cause is only logged.
    """

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message, status_code=500, code="INTERNAL_ERROR")


class DatabaseError(InternalError):
    """Specific for DB issues."""

    pass


__all__ = [
    "AppError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "AuthError",
    "ForbiddenError",
    "InternalError",
    "DatabaseError",
]
