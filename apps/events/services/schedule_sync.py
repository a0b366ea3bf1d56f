"""
Shift time synchronisation.

An event's schedule is the single source of truth for the times of its
event-owned shifts. When the schedule moves, ScheduleTimeSync pushes the new
window to every shift of the event in one bulk update. Standalone shifts
(event is null) are never touched.

Cascade:
    EventSchedule change -> shift times -> totals (best-effort) -> activity log

The totals refresh is the one best-effort step in the engine: it runs in its
own savepoint and a failure is logged and swallowed, so the time change
still commits. The stale totals are repaired by the next recalculation or by
the events.rebuild_event_totals task.
"""

import logging
from datetime import datetime

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from apps.audit.writer import log_activity, model_snapshot
from apps.events.models import Event, EventSchedule
from apps.events.services.totals import TotalsRecalculator
from apps.scheduling.models import Shift
from core.results import ServiceResult, service_boundary

logger = logging.getLogger(__name__)


class ScheduleTimeSync:
    """
    Move every event-owned shift of `event` to [new_start, new_end).

    Usage:
        updated = ScheduleTimeSync(event, start, end, actor).sync()

    Runs in a nested transaction: a savepoint when the caller already holds
    a transaction, so a failure here rolls back only the sync and the caller
    decides what to do with the error.
    """

    def __init__(self, event: Event, new_start: datetime, new_end: datetime, actor):
        self.event = event
        self.new_start = new_start
        self.new_end = new_end
        self.actor = actor

    def sync(self) -> int:
        """
        Apply the new times and return the number of shifts updated.

        Raises:
            ValidationError: If the new window is empty or inverted.
        """
        if self.new_end <= self.new_start:
            raise ValidationError({"end_time_utc": "must be after start time"})

        event_shifts = Shift.objects.filter(event_id=self.event.pk)

        with transaction.atomic():
            Event.lock_row(self.event.pk)
            updated = event_shifts.update(
                start_time_utc=self.new_start,
                end_time_utc=self.new_end,
                updated_at_utc=timezone.now(),
            )
            if updated == 0:
                return 0

            logger.info("Synced times to %d shift(s) for event=%d", updated, self.event.pk)

            self._refresh_totals()

            schedule = self.event.schedule
            log_activity(
                self.actor,
                "EventSchedule",
                schedule.pk if schedule else None,
                "shift_times_synced",
                after={
                    "updated_shifts_count": updated,
                    "start_time_utc": self.new_start,
                    "end_time_utc": self.new_end,
                },
            )

        return updated

    def _refresh_totals(self) -> None:
        try:
            with transaction.atomic():
                TotalsRecalculator(self.event).recalculate()
        except Exception:
            logger.exception(
                "Totals recalculation failed after shift time sync for event=%d; sync kept",
                self.event.pk,
            )


def apply_schedule_change(event: Event, start_time_utc: datetime, end_time_utc: datetime, actor, expected_version=None):
    """
    Update the event's schedule under optimistic locking, then sync its shifts.

    Must be called inside transaction.atomic().

    Args:
        event: The event whose schedule moves.
        start_time_utc: New start (UTC).
        end_time_utc: New end (UTC).
        actor: The user making the change.
        expected_version: Schedule version the caller edited, or None.

    Returns:
        (schedule, updated_shifts_count)

    Raises:
        EventSchedule.DoesNotExist: If the event has no schedule.
        StaleObjectError: If the schedule was changed concurrently.
    """
    Event.lock_row(event.pk)
    schedule = EventSchedule.objects.select_for_update().get(event_id=event.pk)
    schedule.check_version(expected_version)

    before = model_snapshot(schedule, ["start_time_utc", "end_time_utc", "version"])
    schedule.start_time_utc = start_time_utc
    schedule.end_time_utc = end_time_utc
    schedule.save_versioned(["start_time_utc", "end_time_utc"])
    log_activity(
        actor,
        "EventSchedule",
        schedule.pk,
        "updated",
        before=before,
        after=model_snapshot(schedule, ["start_time_utc", "end_time_utc", "version"]),
    )

    # Keep the caller's event pointing at the fresh schedule row
    event.event_schedule = schedule

    updated = ScheduleTimeSync(event, start_time_utc, end_time_utc, actor).sync()
    return schedule, updated


@service_boundary("sync shift times")
def sync_shift_times(event: Event, start_time_utc: datetime, end_time_utc: datetime, actor) -> ServiceResult:
    """Push a time window to the event's shifts without touching the schedule row."""
    updated = ScheduleTimeSync(event, start_time_utc, end_time_utc, actor).sync()
    return ServiceResult.ok(updated_shifts_count=updated)


@service_boundary("reschedule event")
def reschedule_event(
    event: Event, start_time_utc: datetime, end_time_utc: datetime, actor, expected_version=None
) -> ServiceResult:
    """
    Move an event to a new time window.

    The schedule row, every event-owned shift and the totals change in one
    transaction. A stale `expected_version` aborts everything.
    """
    with transaction.atomic():
        schedule, updated = apply_schedule_change(event, start_time_utc, end_time_utc, actor, expected_version)
    return ServiceResult.ok(schedule=schedule, updated_shifts_count=updated)
