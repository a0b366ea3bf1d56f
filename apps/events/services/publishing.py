"""
Event lifecycle: publishing and completion.

Publishing turns a draft event's skill requirements into shift rows: one
auto-generated, capacity-1 shift per needed worker, timed from the event
schedule. Completion closes an event once its schedule has ended.
"""

import logging

from django.db import transaction
from django.utils import timezone

from apps.audit.writer import log_activity
from apps.events.models import Event, EventSkillRequirement
from apps.events.services.totals import TotalsRecalculator
from apps.scheduling.models import Shift
from core.exceptions import PreconditionFailed
from core.results import ServiceResult, service_boundary

logger = logging.getLogger(__name__)


def create_requirement_shifts(event: Event, requirement: EventSkillRequirement, count: int, actor) -> list[Shift]:
    """
    Create `count` unit-capacity shifts for a requirement.

    Shifts take their times from the event schedule and their rate and
    certification from the requirement. Must be called inside
    transaction.atomic() with the event locked.

    Args:
        event: The owning event (must have a schedule).
        requirement: The skill requirement the shifts fill.
        count: Number of shifts to create.
        actor: The user credited as creator.

    Returns:
        The created shifts.
    """
    if count <= 0:
        return []

    schedule = event.schedule
    shifts = []
    for _ in range(count):
        shift = Shift(
            event=event,
            event_skill_requirement=requirement,
            client_name=event.title,
            role_needed=requirement.skill_name,
            start_time_utc=schedule.start_time_utc,
            end_time_utc=schedule.end_time_utc,
            capacity=1,
            pay_rate=requirement.pay_rate,
            auto_generated=True,
            required_cert_id=requirement.required_certification_id,
            notes=event.check_in_instructions,
            created_by=actor,
        )
        shift.full_clean()
        shifts.append(shift)

    created = Shift.objects.bulk_create(shifts)
    logger.debug("Created %d '%s' shift(s) for event=%d", len(created), requirement.skill_name, event.pk)
    return created


@service_boundary("publish event")
def publish_event(event: Event, actor) -> ServiceResult:
    """
    Publish a draft event and generate its shifts.

    Preconditions: status is draft, at least one skill requirement exists,
    and a schedule is attached. Shift generation is skipped when the event
    already has shifts, so a retried publish never duplicates them.

    Returns:
        ServiceResult with the event and shifts_created.
    """
    with transaction.atomic():
        event.lock()

        if event.status != Event.Status.DRAFT:
            raise PreconditionFailed(f"Only draft events can be published. Current status: {event.status}")

        requirements = list(event.skill_requirements.all())
        if not requirements:
            raise PreconditionFailed("Add at least one skill requirement before publishing.")
        if event.schedule is None:
            raise PreconditionFailed("Set the event schedule before publishing.")

        created = 0
        if not event.shifts.exists():
            for requirement in requirements:
                created += len(create_requirement_shifts(event, requirement, requirement.needed_workers, actor))

        event.status = Event.Status.PUBLISHED
        event.published_at_utc = timezone.now()
        event.save_versioned(["status", "published_at_utc"])

        TotalsRecalculator(event).recalculate()

        log_activity(
            actor,
            "Event",
            event.pk,
            "published",
            before={"status": Event.Status.DRAFT},
            after={"status": event.status, "shifts_created": created},
        )

    logger.info("Event %d published with %d generated shift(s)", event.pk, created)
    return ServiceResult.ok(event=event, shifts_created=created)


@service_boundary("complete event")
def complete_event(event: Event, actor, notes=None) -> ServiceResult:
    """
    Mark a published or assigned event as completed after its schedule ends.

    Totals are recalculated one last time so the closed event carries its
    final hours and pay.
    """
    with transaction.atomic():
        event.lock()

        if event.status not in (Event.Status.PUBLISHED, Event.Status.ASSIGNED):
            raise PreconditionFailed(f"Cannot complete a {event.status} event.")
        if not event.has_ended:
            raise PreconditionFailed("Cannot complete an event before its schedule has ended.")

        previous_status = event.status
        event.status = Event.Status.COMPLETED
        event.completed_at_utc = timezone.now()
        event.completion_notes = notes or ""
        event.save_versioned(["status", "completed_at_utc", "completion_notes"])

        totals = TotalsRecalculator(event).recalculate()

        log_activity(
            actor,
            "Event",
            event.pk,
            "completed",
            before={"status": previous_status},
            after={"status": event.status, **totals.as_dict()},
            note=event.completion_notes,
        )

    return ServiceResult.ok(event=event, totals=totals.as_dict())
