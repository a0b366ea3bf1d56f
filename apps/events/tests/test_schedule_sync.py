"""
Tests for shift time synchronisation and rescheduling.

Run with:
    python manage.py test apps.events.tests.test_schedule_sync
"""

from decimal import Decimal
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase

from apps.audit.models import ActivityLog
from apps.events.models import Event, EventSchedule
from apps.events.services import ScheduleTimeSync, reschedule_event, sync_shift_times
from apps.scheduling.models import Shift
from apps.scheduling.services import ShiftAssignmentService
from apps.scheduling.tests.factories import at, make_published_event, make_shift, make_user, make_worker
from core.exceptions import ErrorKind


class ScheduleTimeSyncTests(TestCase):
    def setUp(self):
        self.manager = make_user()
        self.event = make_published_event({"Server": 2, "Cook": 1}, pay_rate="20")
        self.standalone = make_shift(at(10), duration_hours=4)
        self.new_start, self.new_end = at(16, days=3), at(23, days=3)

    def test_moves_only_event_shifts(self):
        updated = ScheduleTimeSync(self.event, self.new_start, self.new_end, self.manager).sync()

        self.assertEqual(updated, 3)
        for shift in Shift.objects.filter(event=self.event):
            self.assertEqual(shift.start_time_utc, self.new_start)
            self.assertEqual(shift.end_time_utc, self.new_end)

        self.standalone.refresh_from_db()
        self.assertEqual(self.standalone.start_time_utc, at(10))

        log = ActivityLog.objects.get(action="shift_times_synced")
        self.assertEqual(log.entity_type, "EventSchedule")
        self.assertEqual(log.entity_id, self.event.schedule.pk)
        self.assertEqual(log.after_json["updated_shifts_count"], 3)
        self.assertEqual(log.after_json["start_time_utc"], self.new_start.isoformat())

    def test_totals_follow_the_new_duration(self):
        shift = Shift.objects.filter(event=self.event, role_needed="Server").first()
        ShiftAssignmentService.assign(shift, make_worker(), self.manager)

        ScheduleTimeSync(self.event, self.new_start, self.new_end, self.manager).sync()

        self.event.refresh_from_db()
        self.assertEqual(self.event.total_hours_worked, Decimal("7.00"))
        self.assertEqual(self.event.total_pay_amount, Decimal("140.00"))

    def test_totals_failure_does_not_undo_the_sync(self):
        with mock.patch(
            "apps.events.services.schedule_sync.TotalsRecalculator.recalculate",
            side_effect=DatabaseError("lock timeout"),
        ):
            updated = ScheduleTimeSync(self.event, self.new_start, self.new_end, self.manager).sync()

        self.assertEqual(updated, 3)
        self.assertEqual(Shift.objects.filter(event=self.event, start_time_utc=self.new_start).count(), 3)
        self.assertTrue(ActivityLog.objects.filter(action="shift_times_synced").exists())

    def test_event_without_shifts_writes_no_log(self):
        Shift.objects.filter(event=self.event).delete()
        updated = ScheduleTimeSync(self.event, self.new_start, self.new_end, self.manager).sync()
        self.assertEqual(updated, 0)
        self.assertFalse(ActivityLog.objects.filter(action="shift_times_synced").exists())

    def test_inverted_window_is_rejected(self):
        result = sync_shift_times(self.event, self.new_end, self.new_start, self.manager)
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.VALIDATION)
        self.assertFalse(Shift.objects.filter(start_time_utc=self.new_end).exists())


class RescheduleEventTests(TestCase):
    def setUp(self):
        self.manager = make_user()
        self.event = make_published_event({"Server": 2})
        self.new_start, self.new_end = at(12, days=5), at(20, days=5)

    def test_moves_schedule_and_shifts_together(self):
        result = reschedule_event(self.event, self.new_start, self.new_end, self.manager, expected_version=1)

        self.assertTrue(result.success, result.error)
        self.assertEqual(result.data["updated_shifts_count"], 2)
        schedule = EventSchedule.objects.get(event=self.event)
        self.assertEqual(schedule.start_time_utc, self.new_start)
        self.assertEqual(schedule.version, 2)
        self.assertEqual(Shift.objects.filter(event=self.event, end_time_utc=self.new_end).count(), 2)
        self.assertTrue(
            ActivityLog.objects.filter(entity_type="EventSchedule", entity_id=schedule.pk, action="updated").exists()
        )

    def test_stale_schedule_version_changes_nothing(self):
        reschedule_event(self.event, self.new_start, self.new_end, self.manager, expected_version=1)

        result = reschedule_event(self.event, at(8, days=6), at(12, days=6), self.manager, expected_version=1)

        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.STALE_OBJECT)
        self.assertEqual(EventSchedule.objects.get(event=self.event).start_time_utc, self.new_start)
        self.assertEqual(Shift.objects.filter(event=self.event, start_time_utc=self.new_start).count(), 2)

    def test_inverted_window_changes_nothing(self):
        result = reschedule_event(self.event, self.new_end, self.new_start, self.manager)
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.VALIDATION)
        self.assertEqual(EventSchedule.objects.get(event=self.event).version, 1)

    def test_event_row_is_locked(self):
        with mock.patch.object(Event, "lock_row") as event_lock:
            result = reschedule_event(self.event, self.new_start, self.new_end, self.manager)

        self.assertTrue(result.success, result.error)
        event_lock.assert_called_with(self.event.pk)
