"""
Service-level errors.

Services raise these; the Flask error handler in create_app() turns them into
JSON responses using the HTTP status carried by the ErrorCode.
"""
from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(Enum):
    USER_NOT_FOUND = (404, "User not found.")
    PETITION_NOT_FOUND = (404, "Petition not found.")
    BOARD_NOT_FOUND = (404, "Board post not found.")

    EMAIL_DUPLICATED = (409, "Email is already registered.")

    PETITION_NOT_ONGOING = (409, "Only ongoing petitions can be agreed to.")
    ALREADY_AGREED = (409, "You have already agreed to this petition.")
    ALREADY_REPORTED = (409, "You have already reported this petition.")
    SELF_AGREEMENT_NOT_ALLOWED = (409, "You cannot agree to your own petition.")
    SELF_REPORT_NOT_ALLOWED = (409, "You cannot report your own petition.")
    INVALID_STATUS_TRANSITION = (409, "Petition status cannot be changed that way.")

    PETITION_TOO_FREQUENT = (429, "Only one petition can be submitted every 7 days.")

    EMAIL_UNCERTIFIED = (400, "Email has not been certified.")
    EMAIL_VERIFICATION_FAILED = (502, "Email verification service is unavailable.")

    INVALID_CREDENTIALS = (401, "Invalid credentials.")
    TOKEN_INVALID = (401, "Token is invalid or expired.")
    LOGIN_REQUIRED = (401, "Login required.")
    ADMIN_REQUIRED = (403, "Administrator permission required.")

    INVALID_REQUEST = (400, "Invalid request.")

    def __init__(self, http_status: int, message: str) -> None:
        self.http_status = http_status
        self.message = message


class ServiceError(Exception):
    def __init__(self, code: ErrorCode, message: str | None = None) -> None:
        self.code = code
        self.message = message or code.message
        super().__init__(self.message)

    @property
    def http_status(self) -> int:
        return self.code.http_status

    def to_dict(self) -> dict[str, Any]:
        return {"ok": False, "code": self.code.name, "message": self.message}


class ResourceNotFoundError(ServiceError):
    pass


class DuplicateResourceError(ServiceError):
    pass


class InvalidStateError(ServiceError):
    pass


class BusinessRuleError(ServiceError):
    pass


class EmailNotCertifiedError(ServiceError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(ErrorCode.EMAIL_UNCERTIFIED, message)


class AuthenticationError(ServiceError):
    pass


class PermissionDeniedError(ServiceError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(ErrorCode.ADMIN_REQUIRED, message)


class RequestValidationError(ServiceError):
    """Bad request payload. `errors` holds one human-readable message per problem."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__(ErrorCode.INVALID_REQUEST, "; ".join(errors) or None)
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["errors"] = self.errors
        return d
