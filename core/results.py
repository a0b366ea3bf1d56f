"""
Result values returned by every orchestrating service.

The request layer never sees a bare exception for an expected business
failure. It receives a ServiceResult:

    {"success": True, "data": {...}}
    {"success": False, "error": "...", "error_kind": "conflict", "errors": [...]}

Usage:
    @service_boundary("assign worker")
    def assign(shift, worker, actor):
        ...
        return ServiceResult.ok(assignment=assignment)

`service_boundary` is the outermost layer: it converts DomainError,
ValidationError, database errors and anything unexpected into a failure
result. Inner layers are free to raise; the transaction they run in has
already been rolled back by the time the boundary sees the exception.
"""

import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import DatabaseError

from core.exceptions import DomainError, ErrorKind

logger = logging.getLogger(__name__)

# Marks an optional argument the caller did not pass, where None is a real value
UNSET = object()


@dataclass
class ServiceResult:
    """
    Outcome of a service call.

    Attributes:
        success: True if the operation committed.
        data: Payload for successful calls (and diagnostics for some failures).
        error: Human-readable failure message.
        error_kind: One of core.exceptions.ErrorKind.
        errors: Field-level messages for validation failures.
    """

    success: bool
    data: dict = field(default_factory=dict)
    error: str = ""
    error_kind: Optional[str] = None
    errors: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls, **data) -> "ServiceResult":
        """Return a successful result carrying `data`."""
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, kind: str, errors=None, **data) -> "ServiceResult":
        """Return a failure result."""
        return cls(
            success=False,
            error=error,
            error_kind=kind,
            errors=list(errors or [error]),
            data=data,
        )

    def __bool__(self) -> bool:
        return self.success

    def as_dict(self) -> dict[str, Any]:
        """Return the wire shape consumed by the request layer."""
        if self.success:
            return {"success": True, "data": self.data}
        payload = {
            "success": False,
            "error": self.error,
            "error_kind": self.error_kind,
            "errors": self.errors,
        }
        if self.data:
            payload["data"] = self.data
        return payload


def validation_messages(exc: ValidationError) -> list[str]:
    """Flatten a ValidationError into "field: message" strings."""
    if hasattr(exc, "error_dict"):
        messages = []
        for field_name, field_errors in exc.message_dict.items():
            prefix = "" if field_name == "__all__" else f"{field_name}: "
            messages.extend(f"{prefix}{message}" for message in field_errors)
        return messages
    return list(exc.messages)


def service_boundary(operation: str):
    """
    Decorate an orchestrator so that no exception escapes it.

    Args:
        operation: Short label used in log lines and internal error messages.
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs) -> ServiceResult:
            try:
                return fn(*args, **kwargs)
            except DomainError as exc:
                logger.info("%s rejected (%s): %s", operation, exc.kind, exc.message)
                return ServiceResult.fail(exc.message, exc.kind, **exc.data)
            except ValidationError as exc:
                messages = validation_messages(exc)
                logger.info("%s failed validation: %s", operation, messages)
                return ServiceResult.fail(
                    "; ".join(messages), ErrorKind.VALIDATION, errors=messages
                )
            except ObjectDoesNotExist as exc:
                logger.info("%s target not found: %s", operation, exc)
                return ServiceResult.fail(str(exc), ErrorKind.NOT_FOUND)
            except DatabaseError as exc:
                logger.exception("%s failed with a database error", operation)
                return ServiceResult.fail(f"Failed to {operation}: {exc}", ErrorKind.INTERNAL)
            except Exception as exc:
                logger.exception("%s failed unexpectedly", operation)
                return ServiceResult.fail(f"Failed to {operation}: {exc}", ErrorKind.INTERNAL)

        return wrapper

    return decorator
