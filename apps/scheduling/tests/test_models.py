from datetime import timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings

from apps.scheduling.models import Assignment
from apps.scheduling.services import ShiftAssignmentService
from apps.scheduling.tests.factories import (
    at,
    make_assignment,
    make_published_event,
    make_shift,
    make_user,
    make_worker,
)


class TestShiftModel(TestCase):
    def test_duration_is_exact_to_the_second(self):
        shift = make_shift(at(10), end_time_utc=at(11, 0, 18))
        self.assertEqual(shift.duration_hours, Decimal("1.005"))

    def test_end_must_be_after_start(self):
        shift = make_shift(at(10))
        shift.end_time_utc = shift.start_time_utc
        with self.assertRaises(ValidationError):
            shift.full_clean()

    def test_auto_generated_shifts_have_capacity_one(self):
        shift = make_shift(auto_generated=True)
        shift.capacity = 2
        with self.assertRaises(ValidationError):
            shift.full_clean()

    def test_capacity_must_be_positive(self):
        shift = make_shift()
        shift.capacity = 0
        with self.assertRaises(ValidationError):
            shift.full_clean()

    def test_overnight_shift(self):
        shift = make_shift(at(22), duration_hours=6)
        self.assertGreater(shift.end_time_utc.date(), shift.start_time_utc.date())
        self.assertEqual(shift.duration_hours, Decimal(6))


class TestStaffingProgress(TestCase):
    def setUp(self):
        self.manager = make_user()
        self.shift = make_shift(capacity=2)

    def test_empty_shift(self):
        self.assertEqual(self.shift.staffing_progress, {"assigned": 0, "required": 2, "percentage": 0})
        self.assertFalse(self.shift.is_fully_staffed)

    def test_overbooked_shift_reports_over_100_percent(self):
        """Two confirmed of capacity 2 is 100%; a bypassed third makes it 150%."""
        make_assignment(make_worker(), self.shift, status=Assignment.Status.CONFIRMED)
        make_assignment(make_worker(), self.shift, status=Assignment.Status.CONFIRMED)
        self.assertTrue(self.shift.is_fully_staffed)
        self.assertEqual(self.shift.staffing_progress["percentage"], 100)

        blocked = ShiftAssignmentService.assign(self.shift, make_worker(), self.manager)
        self.assertFalse(blocked.success)
        self.assertEqual(blocked.data["conflicts"][0]["kind"], "capacity_exceeded")

        result = ShiftAssignmentService.assign(self.shift, make_worker(), self.manager, allow_overbooking=True)
        self.assertTrue(result.success, result.error)
        self.assertEqual(self.shift.staffing_progress, {"assigned": 3, "required": 2, "percentage": 150})
        self.assertTrue(self.shift.is_fully_staffed)

    def test_cancelled_rows_still_count_toward_staffing(self):
        """A consumed slot stays consumed for progress, unlike totals."""
        make_assignment(make_worker(), self.shift, status=Assignment.Status.CANCELLED)
        make_assignment(make_worker(), self.shift, status=Assignment.Status.NO_SHOW)
        self.assertTrue(self.shift.is_fully_staffed)
        self.assertEqual(self.shift.active_assignment_count, 0)

    def test_percentage_rounds_half_up(self):
        shift = make_shift(capacity=8)
        make_assignment(make_worker(), shift)  # 12.5%
        self.assertEqual(shift.staffing_progress["percentage"], 13)


class TestAssignmentEffectiveValues(TestCase):
    def setUp(self):
        self.shift = make_shift(at(10), duration_hours=4, pay_rate=Decimal("20.00"))

    def test_falls_back_to_shift_duration_and_rate(self):
        assignment = make_assignment(make_worker(), self.shift)
        self.assertEqual(assignment.effective_hours, Decimal(4))
        self.assertEqual(assignment.effective_hourly_rate, Decimal("20.00"))
        self.assertEqual(assignment.effective_pay, Decimal("80.00"))

    def test_logged_values_win(self):
        assignment = make_assignment(
            make_worker(), self.shift, hours_worked=Decimal("3.5"), hourly_rate=Decimal("25.00")
        )
        self.assertEqual(assignment.effective_pay, Decimal("87.50"))

    @override_settings(STAFFING={"DEFAULT_PAY_RATE": "15.50", "TOTALS_STRATEGY": "iterate"})
    def test_default_rate_when_nothing_set(self):
        shift = make_shift(pay_rate=None)
        assignment = make_assignment(make_worker(), shift)
        self.assertEqual(assignment.effective_hourly_rate, Decimal("15.50"))

    def test_zero_default_rate(self):
        shift = make_shift(pay_rate=None)
        assignment = make_assignment(make_worker(), shift)
        self.assertEqual(assignment.effective_pay, Decimal(0))

    def test_hours_must_be_between_0_and_24(self):
        assignment = make_assignment(make_worker(), self.shift)
        assignment.hours_worked = Decimal("24.5")
        with self.assertRaises(ValidationError):
            assignment.full_clean()

    def test_can_approve_after_shift_ends(self):
        past = make_shift(at(10, days=-2))
        self.assertTrue(make_assignment(make_worker(), past).can_approve)
        self.assertFalse(make_assignment(make_worker(), self.shift).can_approve)
        self.assertEqual(past.end_time_utc - past.start_time_utc, timedelta(hours=4))


class TestStringRepresentations(TestCase):
    def test_labels_are_plain_ascii(self):
        event = make_published_event({"Server": 1})
        shift = event.shifts.get()
        labels = [
            str(event.schedule),
            str(event.skill_requirements.get()),
            str(shift),
            str(make_assignment(make_worker(), shift)),
        ]
        for label in labels:
            self.assertTrue(label.isascii(), label)
        self.assertIn(" - ", labels[0])
        self.assertIn("1 x Server", labels[1])
        self.assertIn(" | ", labels[3])
