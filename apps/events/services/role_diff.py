"""
Role diffs for published events.

A manager edits a published event's roles ("Server: 5 -> 2, add 1
Bartender"). RoleDiffApplier reconciles the requested headcounts with the
event's shift rows:

  new role             create the requirement and N unit shifts
  requested > shifts   add the difference
  requested < shifts   delete unfilled shifts first (newest first); if that
                       is not enough, either fail (force=False) or cancel the
                       workers on filled shifts and delete those too
  requested == shifts  no shift changes

Other requirement fields are only written when they differ. A pay-rate
change goes through RequirementPayCascade so the generated shifts follow.

Everything runs in one transaction with the event row locked (SERIALIZABLE
on PostgreSQL when this is the outermost transaction). Any failure, a
missing `force` included, rolls back every role processed so far.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional, Union

from django.db.models import Q
from django.utils import timezone

from apps.audit.writer import log_activity, model_snapshot
from apps.events.models import Event, EventSkillRequirement
from apps.events.services.pay_cascade import RequirementPayCascade
from apps.events.services.publishing import create_requirement_shifts
from apps.events.services.schedule_sync import apply_schedule_change
from apps.events.services.totals import TotalsRecalculator
from apps.scheduling.models import Assignment, Shift
from core.exceptions import ForceRequired, PreconditionFailed
from core.locking import serializable_atomic
from core.results import UNSET, ServiceResult, service_boundary

logger = logging.getLogger(__name__)


@dataclass
class RoleRequest:
    """
    The requested state of one role.

    Fields left as UNSET keep the existing requirement's value.
    """

    skill_name: str
    needed_workers: int
    pay_rate: Any = UNSET
    required_certification_id: Any = UNSET
    description: Any = UNSET

    @classmethod
    def from_value(cls, value: Union["RoleRequest", dict]) -> "RoleRequest":
        """Accept a RoleRequest or a plain dict (as decoded from a request body)."""
        if isinstance(value, cls):
            return value
        return cls(
            skill_name=value["skill_name"],
            needed_workers=int(value["needed_workers"]),
            pay_rate=value.get("pay_rate", UNSET),
            required_certification_id=value.get("required_certification_id", UNSET),
            description=value.get("description", UNSET),
        )


class RoleDiffApplier:
    """
    Apply a set of role changes to a published event.

    Usage:
        result = RoleDiffApplier(event, [{"skill_name": "Server", "needed_workers": 2}], actor).apply()
        result.data["summary"]  # {"added": 0, "removed": 3, "unchanged": 0, "total": 3}

    Args:
        event: A published event whose schedule has not started.
        roles: RoleRequest instances or dicts, one per role to reconcile.
        actor: The user making the change.
        force: Allow cancelling assigned workers when a role shrinks.
        reason: Recorded on every cancellation and deletion log entry.
        schedule: Optional {"start_time_utc", "end_time_utc"} applied after the roles.
        expected_version: Event version the caller edited, or None.
    """

    def __init__(
        self,
        event: Event,
        roles: Iterable[Union[RoleRequest, dict]],
        actor,
        force: bool = False,
        reason: Optional[str] = None,
        schedule: Optional[dict] = None,
        expected_version: Optional[int] = None,
    ):
        self.event = event
        self.roles = [RoleRequest.from_value(role) for role in roles]
        self.actor = actor
        self.force = force
        self.reason = reason
        self.schedule = schedule
        self.expected_version = expected_version

        self.added = 0
        self.removed = 0
        self.unchanged = 0

    @property
    def summary(self) -> dict:
        return {
            "added": self.added,
            "removed": self.removed,
            "unchanged": self.unchanged,
            "total": self.added + self.removed + self.unchanged,
        }

    @service_boundary("apply role changes")
    def apply(self) -> ServiceResult:
        with serializable_atomic():
            self.event.lock()
            self.event.check_version(self.expected_version)
            self._check_preconditions()

            for role in self.roles:
                self._apply_role(role)

            if self.schedule:
                apply_schedule_change(
                    self.event,
                    self.schedule["start_time_utc"],
                    self.schedule["end_time_utc"],
                    self.actor,
                    self.schedule.get("expected_version"),
                )

            # Bump the event version so concurrent edits of the same copy go stale
            self.event.save_versioned([])

            TotalsRecalculator(self.event).recalculate()

            log_activity(
                self.actor,
                "Event",
                self.event.pk,
                "roles_updated",
                after=self.summary,
                note=self.reason or "",
            )

        logger.info("Role diff applied to event=%d: %s", self.event.pk, self.summary)
        return ServiceResult.ok(event=self.event, summary=self.summary)

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def _check_preconditions(self) -> None:
        if self.event.status != Event.Status.PUBLISHED:
            raise PreconditionFailed(
                f"Only published events can have their roles edited. Current status: {self.event.status}"
            )
        schedule = self.event.schedule
        if schedule is None:
            raise PreconditionFailed("Cannot edit roles of an event without a schedule.")
        if schedule.start_time_utc <= timezone.now():
            raise PreconditionFailed(
                f"Cannot edit an event that has already started at {schedule.start_time_utc:%Y-%m-%d %H:%M} UTC."
            )

    # ------------------------------------------------------------------
    # Per-role reconciliation
    # ------------------------------------------------------------------

    def _apply_role(self, role: RoleRequest) -> None:
        if role.needed_workers < 0:
            raise PreconditionFailed(f"'{role.skill_name}' cannot need fewer than 0 workers.")

        requirement = self.event.skill_requirements.filter(skill_name=role.skill_name).first()
        if requirement is None:
            self._create_role(role)
            return

        current = Shift.objects.filter(event_id=self.event.pk, event_skill_requirement=requirement).count()
        delta = role.needed_workers - current
        logger.debug(
            "Role '%s' on event=%d: requested=%d current=%d",
            role.skill_name,
            self.event.pk,
            role.needed_workers,
            current,
        )

        if delta > 0:
            create_requirement_shifts(self.event, requirement, delta, self.actor)
            self.added += delta
        elif delta < 0:
            self._shrink_role(requirement, -delta)
            self.removed += -delta
        else:
            self.unchanged += role.needed_workers

        self._update_requirement(requirement, role)

    def _create_role(self, role: RoleRequest) -> None:
        requirement = EventSkillRequirement(
            event=self.event,
            skill_name=role.skill_name,
            needed_workers=role.needed_workers,
            pay_rate=None if role.pay_rate is UNSET else role.pay_rate,
            required_certification_id=(
                None if role.required_certification_id is UNSET else role.required_certification_id
            ),
            description="" if role.description is UNSET else (role.description or ""),
        )
        requirement.full_clean()
        requirement.save()

        create_requirement_shifts(self.event, requirement, role.needed_workers, self.actor)
        self.added += role.needed_workers

        log_activity(
            self.actor,
            "EventSkillRequirement",
            requirement.pk,
            "created",
            after=model_snapshot(requirement, ["skill_name", "needed_workers", "pay_rate", "required_certification"]),
        )

    def _shrink_role(self, requirement: EventSkillRequirement, count: int) -> None:
        """
        Remove `count` shifts of a role, unfilled ones first.

        A shift is unfilled when it has no assignment rows at all. Cancelled
        or no_show history still counts as filled and needs force to remove.

        Raises:
            ForceRequired: If filled shifts would have to go and force is off.
        """
        shifts = Shift.objects.filter(event_id=self.event.pk, event_skill_requirement=requirement)
        filled_ids = set(Assignment.objects.filter(shift__in=shifts).values_list("shift_id", flat=True))

        newest_first = list(shifts.order_by("-id"))
        unfilled = [shift for shift in newest_first if shift.pk not in filled_ids][:count]
        shortfall = count - len(unfilled)

        if shortfall > 0 and not self.force:
            raise ForceRequired(f"{shortfall} would require unassigning workers")

        for shift in unfilled:
            self._delete_shift(shift, affected_worker_ids=[])

        if shortfall > 0:
            filled = [shift for shift in newest_first if shift.pk in filled_ids][:shortfall]
            for shift in filled:
                self._unassign_and_delete(shift)

    def _unassign_and_delete(self, shift: Shift) -> None:
        active = list(
            shift.assignments.select_for_update()
            .exclude(status__in=Assignment.INACTIVE_STATUSES)
            .order_by("id")
        )
        for assignment in active:
            before = model_snapshot(assignment, ["status", "worker", "shift", "hours_worked", "version"])
            assignment.status = Assignment.Status.CANCELLED
            assignment.hours_worked = 0
            assignment.save_versioned(["status", "hours_worked"])
            log_activity(
                self.actor,
                "Assignment",
                assignment.pk,
                "unassigned",
                before=before,
                after={"status": Assignment.Status.CANCELLED, "reason": self.reason},
                note=self.reason or "",
            )

        worker_ids = sorted(set(shift.assignments.values_list("worker_id", flat=True)))
        self._delete_shift(shift, affected_worker_ids=worker_ids)

    def _delete_shift(self, shift: Shift, affected_worker_ids: list) -> None:
        before = model_snapshot(
            shift, ["role_needed", "start_time_utc", "end_time_utc", "capacity", "pay_rate", "event_skill_requirement"]
        )
        shift_id = shift.pk
        shift.delete()
        log_activity(
            self.actor,
            "Shift",
            shift_id,
            "deleted",
            before=before,
            after={"reason": self.reason, "affected_worker_ids": affected_worker_ids},
            note=self.reason or "",
        )

    def _update_requirement(self, requirement: EventSkillRequirement, role: RoleRequest) -> None:
        """Write the requirement only if a field actually changed."""
        changes = {"needed_workers": role.needed_workers}
        if role.required_certification_id is not UNSET:
            changes["required_certification_id"] = role.required_certification_id
        if role.description is not UNSET:
            changes["description"] = role.description or ""

        changed = [name for name, value in changes.items() if getattr(requirement, name) != value]
        previous_rate = requirement.pay_rate
        rate_changed = role.pay_rate is not UNSET and not _same_rate(previous_rate, role.pay_rate)

        if not changed and not rate_changed:
            return

        before = model_snapshot(requirement, ["needed_workers", "pay_rate", "required_certification", "description"])
        previous_certification_id = requirement.required_certification_id
        for name in changed:
            setattr(requirement, name, changes[name])
        update_fields = [
            "required_certification" if name == "required_certification_id" else name for name in changed
        ]
        if rate_changed:
            requirement.pay_rate = role.pay_rate
            update_fields.append("pay_rate")

        requirement.save_versioned(update_fields)
        log_activity(
            self.actor,
            "EventSkillRequirement",
            requirement.pk,
            "updated",
            before=before,
            after=model_snapshot(requirement, ["needed_workers", "pay_rate", "required_certification", "description"]),
        )

        if "required_certification_id" in changed:
            self._cascade_certification(requirement, previous_certification_id)

        if rate_changed:
            RequirementPayCascade(requirement, previous_rate, requirement.pay_rate, self.actor).cascade()

    def _cascade_certification(self, requirement: EventSkillRequirement, previous_id) -> None:
        """
        Point the generated shifts at the requirement's new certification.

        Manual shifts, and generated shifts given a different certification by
        hand, keep theirs.
        """
        updated = (
            Shift.objects.filter(event_id=self.event.pk, event_skill_requirement=requirement, auto_generated=True)
            .filter(Q(required_cert_id__isnull=True) | Q(required_cert_id=previous_id))
            .update(required_cert_id=requirement.required_certification_id, updated_at_utc=timezone.now())
        )
        logger.debug(
            "Requirement=%d certification %s -> %s on %d shifts",
            requirement.pk,
            previous_id,
            requirement.required_certification_id,
            updated,
        )


def _same_rate(a, b) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return Decimal(str(a)) == Decimal(str(b))
