# Overview: Closed error taxonomy and the Ok/Err result type shared by every service.

"""
Error Taxonomy

Every failure in the core is classified into one of a fixed set of kinds.
Each kind has a stable HTTP status and a machine-readable kind string so
clients can branch on `type` without parsing messages.

Services return a tagged result instead of raising:

    result = quote_service.convert_to_invoice(ctx, quote_id, publisher=publisher)
    if isinstance(result, Err):
        return error_response(result.error)
    invoice = result.value

SECURITY:
- AUTHENTICATION messages are generic (never confirm a username exists)
- STORAGE errors never carry driver/SQL detail to the caller
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar, Union

from flask import jsonify
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .time_utils import to_utc_z, utcnow


T = TypeVar("T")


class ErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    TENANT = "tenant"
    STORAGE = "storage"
    UNKNOWN = "unknown"


STATUS_BY_KIND = {
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.TENANT: 400,
    ErrorKind.STORAGE: 500,
    ErrorKind.UNKNOWN: 500,
}


@dataclass(frozen=True)
class AppError:
    """A classified failure. `status` defaults to the kind's stable status."""
    kind: ErrorKind
    message: str
    details: Any = None
    status_override: int | None = None

    @property
    def status(self) -> int:
        if self.status_override is not None:
            return self.status_override
        return STATUS_BY_KIND[self.kind]

    def to_dict(self) -> dict:
        body = {
            "success": False,
            "error": self.message,
            "type": self.kind.value,
            "status": self.status,
            "timestamp": to_utc_z(utcnow()),
        }
        if self.details is not None:
            body["details"] = self.details
        return body


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: AppError

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


Result = Union[Ok[T], Err]


def err(kind: ErrorKind, message: str, details: Any = None, *, status: int | None = None) -> Err:
    return Err(AppError(kind=kind, message=message, details=details, status_override=status))


def authentication_error(message: str = "Authentication required", *, status: int | None = None) -> Err:
    return err(ErrorKind.AUTHENTICATION, message, status=status)


def authorization_error(message: str = "Permission denied", details: Any = None) -> Err:
    return err(ErrorKind.AUTHORIZATION, message, details)


def validation_error(message: str = "Validation failed", details: Any = None) -> Err:
    return err(ErrorKind.VALIDATION, message, details)


def not_found_error(message: str = "Resource not found") -> Err:
    return err(ErrorKind.NOT_FOUND, message)


def conflict_error(message: str, details: Any = None) -> Err:
    return err(ErrorKind.CONFLICT, message, details)


def tenant_error(message: str = "Tenant context required") -> Err:
    return err(ErrorKind.TENANT, message)


def storage_error(message: str = "A database error occurred. Please try again later.") -> Err:
    return err(ErrorKind.STORAGE, message)


def classify_exception(exc: BaseException) -> Err:
    """Map an unexpected exception onto the taxonomy without leaking detail."""
    if isinstance(exc, IntegrityError):
        return conflict_error("Conflicting record already exists")
    if isinstance(exc, SQLAlchemyError):
        return storage_error()
    return err(ErrorKind.UNKNOWN, "An unexpected error occurred")


def error_response(error: AppError | Err):
    """Render an error as the standard JSON body and status."""
    if isinstance(error, Err):
        error = error.error
    return jsonify(error.to_dict()), error.status
