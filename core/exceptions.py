"""
Domain exceptions shared by the staffing services.

Inner layers raise these; the outermost orchestrator converts them into a
ServiceResult (see core.results.service_boundary). Each exception carries the
machine-readable `kind` that ends up in `ServiceResult.error_kind`.
"""


class ErrorKind:
    """Machine-readable failure categories exposed to the request layer."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    STALE_OBJECT = "stale_object"
    PRECONDITION = "precondition"
    FORCE_REQUIRED = "force_required"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


class DomainError(Exception):
    """An expected business failure with a classified kind."""

    kind = ErrorKind.PRECONDITION

    def __init__(self, message: str, kind: str = None, data: dict = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.data = data or {}


class PreconditionFailed(DomainError):
    """The entity is not in a state that allows the requested operation."""

    kind = ErrorKind.PRECONDITION


class ConflictError(DomainError):
    """
    An assignment was blocked by one or more conflicts.

    The first conflict is the reported reason; the whole list is kept for
    diagnostics.
    """

    kind = ErrorKind.CONFLICT

    def __init__(self, conflicts: list):
        self.conflicts = list(conflicts)
        message = self.conflicts[0].message if self.conflicts else "Assignment conflict"
        super().__init__(message, data={"conflicts": [c.as_dict() for c in self.conflicts]})


class ForceRequired(DomainError):
    """Reducing a role would remove filled shifts and `force` was not given."""

    kind = ErrorKind.FORCE_REQUIRED
