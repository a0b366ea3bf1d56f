"""
Assignment conflict detection.

This module decides whether a worker can be placed on a shift. Each rule is
an independent, testable function returning a (possibly empty) list of
Conflict records, and the ConflictChecker runs them in a fixed order against
one snapshot of the database:

    worker_inactive
    skill_mismatch
    capacity_exceeded
    already_assigned
    time_overlap             (one per overlapping assignment)
    certification_missing / certification_expired

The checker never writes and never locks. ShiftAssignmentService takes its
locks first (event, worker, shift) and then re-runs the checker, so the answer it
acts on cannot be invalidated by a concurrent assignment.

Usage:
    from apps.scheduling.conflicts import ConflictChecker

    conflicts = ConflictChecker(worker, shift).check()
    if conflicts:
        raise ConflictError(conflicts)

Adding a new rule:
    1. Write a function taking (worker, shift) and returning list[Conflict].
    2. Add it to CONFLICT_PIPELINE at the position of its evaluation order.
    3. Write tests in tests/test_conflicts.py.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional

from apps.scheduling.intervals import overlaps

if TYPE_CHECKING:
    from apps.scheduling.models import Shift
    from apps.workforce.models import Worker

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


class ConflictKind:
    WORKER_INACTIVE = "worker_inactive"
    SKILL_MISMATCH = "skill_mismatch"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    ALREADY_ASSIGNED = "already_assigned"
    TIME_OVERLAP = "time_overlap"
    CERTIFICATION_MISSING = "certification_missing"
    CERTIFICATION_EXPIRED = "certification_expired"


@dataclass
class Conflict:
    """
    One reason an assignment cannot be made.

    Attributes:
        kind: Machine-readable identifier (see ConflictKind).
        message: Human-readable explanation shown to the manager.
        details: Supporting identifiers, e.g. the overlapping shift's id.
    """

    kind: str
    message: str
    details: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "details": dict(self.details)}


# ---------------------------------------------------------------------------
# Individual rules
# ---------------------------------------------------------------------------


def check_worker_active(worker: "Worker", shift: "Shift") -> list[Conflict]:
    """Inactive workers keep their history but take no new shifts."""
    if worker.active:
        return []
    return [
        Conflict(
            kind=ConflictKind.WORKER_INACTIVE,
            message=f"{worker.full_name} is inactive and cannot be assigned.",
            details={"worker_id": worker.pk},
        )
    ]


def check_skill_match(worker: "Worker", shift: "Shift") -> list[Conflict]:
    """
    Verify the worker lists the role the shift needs among their skills.

    Args:
        worker: The worker being considered.
        shift: The shift to be filled.

    Returns:
        A single skill_mismatch conflict, or an empty list.
    """
    if worker.has_skill(shift.role_needed):
        return []
    return [
        Conflict(
            kind=ConflictKind.SKILL_MISMATCH,
            message=f"{worker.full_name} does not have the '{shift.role_needed}' skill required for this shift.",
            details={"role_needed": shift.role_needed, "worker_skills": list(worker.skills or [])},
        )
    ]


def check_capacity(worker: "Worker", shift: "Shift") -> list[Conflict]:
    """
    Block when the shift's active assignments already reach its capacity.

    Cancelled and no_show rows free their slot for new assignments, even
    though staffing progress still counts them.
    """
    from apps.scheduling.models import Assignment

    active_count = shift.assignments.exclude(status__in=Assignment.INACTIVE_STATUSES).count()
    if active_count < shift.capacity:
        return []
    return [
        Conflict(
            kind=ConflictKind.CAPACITY_EXCEEDED,
            message=f"Shift is at full capacity ({shift.capacity} workers).",
            details={"capacity": shift.capacity, "current_count": active_count},
        )
    ]


def check_not_already_assigned(worker: "Worker", shift: "Shift") -> list[Conflict]:
    from apps.scheduling.models import Assignment

    existing = (
        Assignment.objects.filter(worker=worker, shift=shift)
        .exclude(status__in=Assignment.INACTIVE_STATUSES)
        .first()
    )
    if existing is None:
        return []
    return [
        Conflict(
            kind=ConflictKind.ALREADY_ASSIGNED,
            message=f"{worker.full_name} is already assigned to this shift.",
            details={"assignment_id": existing.pk},
        )
    ]


def check_time_overlap(worker: "Worker", shift: "Shift") -> list[Conflict]:
    """
    Report every active assignment of the worker that overlaps this shift.

    All of the worker's shifts are considered, event-owned and standalone
    alike. Intervals are half-open, so back-to-back shifts are allowed.

    Args:
        worker: The worker being considered.
        shift: The proposed shift.

    Returns:
        One time_overlap conflict per overlapping assignment, earliest first.
    """
    from apps.scheduling.models import Assignment

    # Shifts that ended before this one starts can never overlap
    candidates = (
        Assignment.objects.filter(worker=worker, shift__end_time_utc__gt=shift.start_time_utc)
        .exclude(status__in=Assignment.INACTIVE_STATUSES)
        .exclude(shift_id=shift.pk)
        .select_related("shift")
        .order_by("shift__start_time_utc", "id")
    )

    conflicts = []
    for assignment in candidates:
        other = assignment.shift
        if not overlaps(shift.start_time_utc, shift.end_time_utc, other.start_time_utc, other.end_time_utc):
            continue
        conflicts.append(
            Conflict(
                kind=ConflictKind.TIME_OVERLAP,
                message=(
                    f"{worker.full_name} has an overlapping shift from "
                    f"{other.start_time_utc:%Y-%m-%d %H:%M} to {other.end_time_utc:%H:%M} UTC."
                ),
                details={
                    "assignment_id": assignment.pk,
                    "shift_id": other.pk,
                    "start_time_utc": other.start_time_utc.isoformat(),
                    "end_time_utc": other.end_time_utc.isoformat(),
                },
            )
        )
    return conflicts


def check_certification(worker: "Worker", shift: "Shift") -> list[Conflict]:
    """
    Verify the worker holds the shift's required certification through its end.

    The requirement comes from the shift itself, or from its skill
    requirement when the shift has none. A certificate without an expiry
    date is valid indefinitely.
    """
    certification_id = shift.required_certification_id
    if certification_id is None:
        return []

    held = worker.certification_for(certification_id)
    if held is None:
        return [
            Conflict(
                kind=ConflictKind.CERTIFICATION_MISSING,
                message=f"{worker.full_name} does not hold the certification required for this shift.",
                details={"required_cert_id": certification_id},
            )
        ]
    if not held.is_valid_through(shift.end_time_utc):
        return [
            Conflict(
                kind=ConflictKind.CERTIFICATION_EXPIRED,
                message=f"{worker.full_name}'s certification expires before the shift ends.",
                details={
                    "required_cert_id": certification_id,
                    "expires_at_utc": held.expires_at_utc.isoformat(),
                },
            )
        ]
    return []


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

# (kind, rule) in evaluation order. The kind keys the rule so callers can
# skip it (allow_overbooking skips capacity).
CONFLICT_PIPELINE = [
    (ConflictKind.WORKER_INACTIVE, check_worker_active),
    (ConflictKind.SKILL_MISMATCH, check_skill_match),
    (ConflictKind.CAPACITY_EXCEEDED, check_capacity),
    (ConflictKind.ALREADY_ASSIGNED, check_not_already_assigned),
    (ConflictKind.TIME_OVERLAP, check_time_overlap),
    (ConflictKind.CERTIFICATION_MISSING, check_certification),
]


class ConflictChecker:
    """
    Runs every rule for one (worker, shift) pair.

    Usage:
        conflicts = ConflictChecker(worker, shift).check()
        blocking = ConflictChecker(worker, shift).first_blocking()
    """

    def __init__(self, worker: "Worker", shift: "Shift", skip: Iterable[str] = ()):
        self.worker = worker
        self.shift = shift
        self.skip = frozenset(skip)

    def check(self) -> list[Conflict]:
        """Return all conflicts in evaluation order. Empty list means all clear."""
        conflicts = []
        for kind, rule in CONFLICT_PIPELINE:
            if kind in self.skip:
                continue
            conflicts.extend(rule(self.worker, self.shift))

        if conflicts:
            logger.info(
                "Conflicts for worker=%d shift=%d: %s",
                self.worker.pk,
                self.shift.pk,
                ", ".join(c.kind for c in conflicts),
            )
        return conflicts

    def first_blocking(self) -> Optional[Conflict]:
        """Return the first conflict, or None if the assignment is allowed."""
        conflicts = self.check()
        return conflicts[0] if conflicts else None
