"""
Assignment orchestration.

ShiftAssignmentService is the only code path that creates, ends or edits
assignments. Every method:

  - runs in one transaction
  - locks the owning event row first, then takes the worker-scoped lock
    before re-checking anything about the worker
  - locks the rows it changes
  - writes its ActivityLog entries in the same transaction
  - recalculates the owning event's totals as an explicit, critical step
  - returns a ServiceResult (see core.results.service_boundary)

Usage:
    from apps.scheduling.services import ShiftAssignmentService

    result = ShiftAssignmentService.assign(shift, worker, actor=manager)
    if not result:
        return JsonResponse(result.as_dict(), status=409)
"""

import logging
from typing import Iterable, Optional

from django.db import transaction
from django.utils import timezone

from apps.audit.writer import log_activity, model_snapshot
from apps.events.models import Event
from apps.events.services.totals import TotalsRecalculator
from apps.scheduling.conflicts import ConflictChecker, ConflictKind
from apps.scheduling.models import Assignment, Shift
from apps.workforce.models import Worker
from core.exceptions import ConflictError, ErrorKind, PreconditionFailed
from core.locking import worker_lock
from core.results import UNSET, ServiceResult, service_boundary

logger = logging.getLogger(__name__)

ASSIGNMENT_SNAPSHOT_FIELDS = ["shift", "worker", "status", "hours_worked", "hourly_rate", "approved", "version"]


def _refresh_event_totals(shift: Shift) -> None:
    """Recalculate the owning event's totals; standalone shifts have none."""
    if shift.event_id is None:
        return
    TotalsRecalculator(shift.event).recalculate()


def _lock_owning_event(shift_id) -> None:
    """Lock the event that owns shift `shift_id`, if any."""
    event_id = Shift.objects.filter(pk=shift_id).values_list("event_id", flat=True).first()
    if event_id is not None:
        Event.lock_row(event_id)


def _lock_assignment(assignment: Assignment) -> Assignment:
    """Lock the owning event and the worker, then lock and reload the assignment row."""
    _lock_owning_event(assignment.shift_id)
    worker_lock(assignment.worker_id)
    return Assignment.objects.select_for_update().get(pk=assignment.pk)


class ShiftAssignmentService:
    """
    Service object for assigning workers to shifts.

    Responsibilities:
      - Serialize concurrent attempts for the same worker (advisory lock)
      - Re-run ConflictChecker inside the lock
      - Keep event totals in step with every assignment change
      - Return structured results (success or classified failure)
    """

    @staticmethod
    @service_boundary("assign worker")
    def assign(shift: Shift, worker: Worker, actor, allow_overbooking: bool = False) -> ServiceResult:
        """
        Attempt to assign a worker to a shift.

        Args:
            shift: The shift to fill.
            worker: The worker being assigned.
            actor: The manager/admin performing the assignment.
            allow_overbooking: Skip only the capacity check (manager bypass).

        Returns:
            ServiceResult with the new assignment, or a conflict failure whose
            error is the first blocking conflict and whose data["conflicts"]
            lists all of them.
        """
        with transaction.atomic():
            _lock_owning_event(shift.pk)
            worker_lock(worker.pk)
            shift = Shift.objects.select_for_update().get(pk=shift.pk)
            worker = Worker.objects.get(pk=worker.pk)

            skip = {ConflictKind.CAPACITY_EXCEEDED} if allow_overbooking else set()
            conflicts = ConflictChecker(worker, shift, skip=skip).check()
            if conflicts:
                raise ConflictError(conflicts)

            assignment = Assignment(
                shift=shift,
                worker=worker,
                assigned_by=actor,
                status=Assignment.Status.ASSIGNED,
            )
            assignment.full_clean()
            assignment.save()

            log_activity(
                actor,
                "Assignment",
                assignment.pk,
                "created",
                after=model_snapshot(assignment, ASSIGNMENT_SNAPSHOT_FIELDS),
                note="capacity bypassed" if allow_overbooking else "",
            )

            _refresh_event_totals(shift)

        logger.info("Assigned worker=%d to shift=%d (assignment=%d)", worker.pk, shift.pk, assignment.pk)
        return ServiceResult.ok(assignment=assignment)

    @staticmethod
    @service_boundary("bulk assign workers")
    def bulk_assign(pairs: Iterable[tuple[Shift, Worker]], actor) -> ServiceResult:
        """
        Assign several (shift, worker) pairs, each in its own transaction.

        A failing pair never undoes the others.

        Returns:
            Failure if every pair failed; otherwise success with
            data["assignments"] and data["conflicts"] (one entry per failed pair).
        """
        assignments = []
        failures = []
        for shift, worker in pairs:
            result = ShiftAssignmentService.assign(shift, worker, actor)
            if result:
                assignments.append(result.data["assignment"])
                continue
            failures.append(
                {
                    "shift_id": shift.pk,
                    "worker_id": worker.pk,
                    "error": result.error,
                    "error_kind": result.error_kind,
                    "conflicts": result.data.get("conflicts", []),
                }
            )

        if failures and not assignments:
            return ServiceResult.fail(
                "All assignments failed",
                ErrorKind.CONFLICT,
                errors=[failure["error"] for failure in failures],
                conflicts=failures,
            )

        if failures:
            logger.info("Bulk assign: %d assigned, %d failed", len(assignments), len(failures))
        return ServiceResult.ok(assignments=assignments, conflicts=failures)

    @staticmethod
    @service_boundary("unassign worker")
    def unassign(assignment: Assignment, actor, reason: Optional[str] = None, expected_version=None) -> ServiceResult:
        """
        Remove an assignment entirely (hard delete).

        The deleted row is preserved in the activity log's before snapshot.
        """
        with transaction.atomic():
            current = _lock_assignment(assignment)
            current.check_version(expected_version)

            before = model_snapshot(current, ASSIGNMENT_SNAPSHOT_FIELDS)
            assignment_id = current.pk
            shift = current.shift
            current.delete()

            log_activity(
                actor,
                "Assignment",
                assignment_id,
                "unassigned",
                before=before,
                after={"reason": reason},
                note=reason or "",
            )

            _refresh_event_totals(shift)

        logger.info("Unassigned assignment=%d from shift=%d", assignment_id, shift.pk)
        return ServiceResult.ok(assignment_id=assignment_id)

    @staticmethod
    def _terminate(assignment, actor, status, action, reason, expected_version) -> ServiceResult:
        with transaction.atomic():
            current = _lock_assignment(assignment)
            current.check_version(expected_version)

            if current.status not in (Assignment.Status.ASSIGNED, Assignment.Status.CONFIRMED):
                raise PreconditionFailed(
                    f"Cannot mark a {current.get_status_display().lower()} assignment as {Assignment.Status(status).label.lower()}."
                )

            before = model_snapshot(current, ["status", "hours_worked", "version"])
            current.status = status
            current.hours_worked = 0
            current.save_versioned(["status", "hours_worked"])

            log_activity(
                actor,
                "Assignment",
                current.pk,
                action,
                before=before,
                after={
                    "status": current.status,
                    "hours_worked": current.hours_worked,
                    "version": current.version,
                    "reason": reason,
                },
                note=reason or "",
            )

            _refresh_event_totals(current.shift)

        logger.info("Assignment=%d marked %s", current.pk, status)
        return ServiceResult.ok(assignment=current)

    @staticmethod
    @service_boundary("cancel assignment")
    def cancel_assignment(assignment: Assignment, actor, reason: Optional[str] = None, expected_version=None) -> ServiceResult:
        """
        Remove a worker from the job, keeping the row (status cancelled).

        The slot still counts toward staffing progress but no longer toward
        hours, pay or the worker's double-booking checks.
        """
        return ShiftAssignmentService._terminate(
            assignment, actor, Assignment.Status.CANCELLED, "cancelled", reason, expected_version
        )

    @staticmethod
    @service_boundary("mark no-show")
    def mark_no_show(assignment: Assignment, actor, reason: Optional[str] = None, expected_version=None) -> ServiceResult:
        """Record that the worker did not turn up. Hours are zeroed."""
        return ShiftAssignmentService._terminate(
            assignment, actor, Assignment.Status.NO_SHOW, "no_show", reason, expected_version
        )

    @staticmethod
    @service_boundary("update hours")
    def update_hours(
        assignment: Assignment, actor, hours_worked, hourly_rate=UNSET, expected_version=None
    ) -> ServiceResult:
        """
        Log or correct the hours (and optionally the rate) of an assignment.

        Args:
            assignment: The assignment to edit.
            actor: The user making the change.
            hours_worked: Hours between 0 and 24, or None to fall back to the
                          shift duration.
            hourly_rate: New rate (>= 0), None to clear it, or omitted to keep it.
            expected_version: Assignment version the caller edited, or None.
        """
        with transaction.atomic():
            _lock_owning_event(assignment.shift_id)
            current = Assignment.objects.select_for_update().get(pk=assignment.pk)
            current.check_version(expected_version)

            if not current.is_active:
                raise PreconditionFailed(
                    f"Cannot log hours on a {current.get_status_display().lower()} assignment."
                )

            before = model_snapshot(current, ["hours_worked", "hourly_rate", "version"])
            current.hours_worked = hours_worked
            update_fields = ["hours_worked"]
            if hourly_rate is not UNSET:
                current.hourly_rate = hourly_rate
                update_fields.append("hourly_rate")
            current.save_versioned(update_fields)

            log_activity(
                actor,
                "Assignment",
                current.pk,
                "hours_updated",
                before=before,
                after=model_snapshot(current, ["hours_worked", "hourly_rate", "version"]),
            )

            _refresh_event_totals(current.shift)

        return ServiceResult.ok(assignment=current)

    @staticmethod
    @service_boundary("bulk approve assignments")
    def bulk_approve(event, assignment_ids: Iterable[int], actor) -> ServiceResult:
        """
        Approve the hours of several assignments of one event.

        Only un-approved assignments in status assigned, confirmed or
        completed whose shift has ended are approved; everything else is
        reported in skipped_ids. Re-running with the same ids approves
        nothing and writes no activity log entry.

        Returns:
            ServiceResult with approved_count, approved_ids and skipped_ids.
        """
        requested = sorted(set(int(pk) for pk in assignment_ids))
        now = timezone.now()

        with transaction.atomic():
            Event.lock_row(event.pk)
            approvable = list(
                Assignment.objects.select_for_update(of=("self",))
                .filter(
                    pk__in=requested,
                    shift__event_id=event.pk,
                    approved=False,
                    status__in=Assignment.APPROVABLE_STATUSES,
                    shift__end_time_utc__lt=now,
                )
                .order_by("id")
            )

            for assignment in approvable:
                assignment.approved = True
                assignment.approved_by = actor
                assignment.approved_at_utc = now
                assignment.save_versioned(["approved", "approved_by", "approved_at_utc"])

            approved_ids = [assignment.pk for assignment in approvable]
            if approved_ids:
                log_activity(
                    actor,
                    "Event",
                    event.pk,
                    "bulk_approved",
                    after={"approved_count": len(approved_ids), "assignment_ids": approved_ids},
                )

        skipped_ids = [pk for pk in requested if pk not in set(approved_ids)]
        logger.info(
            "Bulk approve on event=%d: %d approved, %d skipped", event.pk, len(approved_ids), len(skipped_ids)
        )
        return ServiceResult.ok(
            approved_count=len(approved_ids),
            approved_ids=approved_ids,
            skipped_ids=skipped_ids,
        )
