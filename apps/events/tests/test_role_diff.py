"""
Tests for RoleDiffApplier.

Run with:
    python manage.py test apps.events.tests.test_role_diff
"""

from decimal import Decimal
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase

from apps.audit.models import ActivityLog
from apps.events.models import Event, EventSkillRequirement
from apps.events.services import RoleDiffApplier, RoleRequest
from apps.scheduling.models import Assignment, Shift
from apps.scheduling.services import ShiftAssignmentService
from apps.scheduling.tests.factories import (
    at,
    certify,
    make_assignment,
    make_certification,
    make_event,
    make_published_event,
    make_schedule,
    make_user,
    make_worker,
)
from core.exceptions import ErrorKind


def server_shifts(event):
    return Shift.objects.filter(event=event, role_needed="Server")


class ShrinkRoleTests(TestCase):
    """Reducing a role removes unfilled shifts first and needs force for filled ones."""

    def setUp(self):
        self.manager = make_user()
        self.event = make_published_event({"Server": 5}, pay_rate="20")
        self.requirement = self.event.skill_requirements.get(skill_name="Server")

    def fill(self, count):
        assignments = []
        for shift in server_shifts(self.event).order_by("id")[:count]:
            result = ShiftAssignmentService.assign(shift, make_worker(), self.manager)
            assignments.append(result.data["assignment"])
        return assignments

    def test_reducing_fully_filled_role_without_force_fails_and_changes_nothing(self):
        self.fill(5)
        logs_before = ActivityLog.objects.count()

        result = RoleDiffApplier(self.event, [{"skill_name": "Server", "needed_workers": 2}], self.manager).apply()

        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.FORCE_REQUIRED)
        self.assertIn("3 would require unassigning workers", result.error)
        self.assertEqual(server_shifts(self.event).count(), 5)
        self.assertEqual(ActivityLog.objects.count(), logs_before)
        self.requirement.refresh_from_db()
        self.assertEqual(self.requirement.needed_workers, 5)

    def test_forced_reduction_cancels_and_deletes_filled_shifts(self):
        self.fill(5)

        result = RoleDiffApplier(
            self.event,
            [{"skill_name": "Server", "needed_workers": 2}],
            self.manager,
            force=True,
            reason="Client downsized",
        ).apply()

        self.assertTrue(result.success, result.error)
        self.assertEqual(result.data["summary"], {"added": 0, "removed": 3, "unchanged": 0, "total": 3})
        self.assertEqual(server_shifts(self.event).count(), 2)

        unassigned = ActivityLog.objects.filter(entity_type="Assignment", action="unassigned")
        self.assertEqual(unassigned.count(), 3)
        for log in unassigned:
            self.assertEqual(log.after_json, {"reason": "Client downsized", "status": "cancelled"})

        deleted = ActivityLog.objects.filter(entity_type="Shift", action="deleted")
        self.assertEqual(deleted.count(), 3)
        self.assertTrue(all(len(log.after_json["affected_worker_ids"]) == 1 for log in deleted))

        self.requirement.refresh_from_db()
        self.assertEqual(self.requirement.needed_workers, 2)
        self.event.refresh_from_db()
        self.assertEqual(self.event.total_shifts_count, 2)
        self.assertEqual(self.event.assigned_shifts_count, 2)
        self.assertEqual(self.event.total_hours_worked, Decimal("8.00"))

    def test_unfilled_shifts_go_first(self):
        filled = self.fill(2)

        result = RoleDiffApplier(self.event, [{"skill_name": "Server", "needed_workers": 2}], self.manager).apply()

        self.assertTrue(result.success, result.error)
        remaining = set(server_shifts(self.event).values_list("pk", flat=True))
        self.assertEqual(remaining, {a.shift_id for a in filled})
        self.assertFalse(ActivityLog.objects.filter(action="unassigned").exists())

    def test_shifts_with_only_cancelled_assignments_still_need_force(self):
        assignments = self.fill(5)
        for assignment in assignments[:3]:
            ShiftAssignmentService.cancel_assignment(assignment, self.manager)

        result = RoleDiffApplier(self.event, [{"skill_name": "Server", "needed_workers": 2}], self.manager).apply()

        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.FORCE_REQUIRED)
        self.assertIn("3 would require unassigning workers", result.error)
        self.assertEqual(server_shifts(self.event).count(), 5)
        self.assertEqual(
            Assignment.objects.filter(shift__event=self.event, status=Assignment.Status.CANCELLED).count(), 3
        )

    def test_single_cancelled_assignment_blocks_reduction_to_zero(self):
        event = make_published_event({"Server": 3}, pay_rate="20")
        shift = server_shifts(event).order_by("id").first()
        assignment = ShiftAssignmentService.assign(shift, make_worker(), self.manager).data["assignment"]
        ShiftAssignmentService.cancel_assignment(assignment, self.manager)

        result = RoleDiffApplier(event, [{"skill_name": "Server", "needed_workers": 0}], self.manager).apply()

        self.assertEqual(result.error_kind, ErrorKind.FORCE_REQUIRED)
        self.assertIn("1 would require unassigning workers", result.error)
        self.assertTrue(Assignment.objects.filter(pk=assignment.pk).exists())
        self.assertEqual(server_shifts(event).count(), 3)

    def test_forced_reduction_removes_shifts_with_cancelled_history(self):
        assignments = self.fill(1)
        ShiftAssignmentService.cancel_assignment(assignments[0], self.manager)

        result = RoleDiffApplier(
            self.event, [{"skill_name": "Server", "needed_workers": 0}], self.manager, force=True
        ).apply()

        self.assertTrue(result.success, result.error)
        self.assertEqual(server_shifts(self.event).count(), 0)
        self.assertFalse(Assignment.objects.filter(pk=assignments[0].pk).exists())
        # Already cancelled, so nothing new to unassign
        self.assertFalse(ActivityLog.objects.filter(action="unassigned").exists())
        deleted = ActivityLog.objects.get(entity_type="Shift", action="deleted", entity_id=assignments[0].shift_id)
        self.assertEqual(deleted.after_json["affected_worker_ids"], [assignments[0].worker_id])


class GrowAndCreateRoleTests(TestCase):
    def setUp(self):
        self.manager = make_user()
        self.event = make_published_event({"Server": 2}, pay_rate="20")

    def test_adding_workers_adds_shifts(self):
        result = RoleDiffApplier(self.event, [RoleRequest("Server", 4)], self.manager).apply()
        self.assertTrue(result.success, result.error)
        self.assertEqual(result.data["summary"]["added"], 2)
        self.assertEqual(server_shifts(self.event).count(), 4)
        self.assertTrue(all(s.pay_rate == Decimal("20") for s in server_shifts(self.event)))

    def test_new_role_creates_requirement_and_shifts(self):
        certification = make_certification("Alcohol Service")
        result = RoleDiffApplier(
            self.event,
            [
                {"skill_name": "Server", "needed_workers": 2},
                {
                    "skill_name": "Bartender",
                    "needed_workers": 3,
                    "pay_rate": "25.00",
                    "required_certification_id": certification.pk,
                },
            ],
            self.manager,
        ).apply()

        self.assertTrue(result.success, result.error)
        self.assertEqual(result.data["summary"], {"added": 3, "removed": 0, "unchanged": 2, "total": 5})
        requirement = EventSkillRequirement.objects.get(event=self.event, skill_name="Bartender")
        self.assertEqual(requirement.needed_workers, 3)
        bartenders = Shift.objects.filter(event_skill_requirement=requirement)
        self.assertEqual(bartenders.count(), 3)
        self.assertTrue(all(s.required_cert_id == certification.pk for s in bartenders))
        self.event.refresh_from_db()
        self.assertEqual(self.event.total_shifts_count, 5)

    def test_unchanged_role_is_not_rewritten(self):
        requirement = self.event.skill_requirements.get()
        result = RoleDiffApplier(self.event, [{"skill_name": "Server", "needed_workers": 2}], self.manager).apply()
        self.assertTrue(result.success, result.error)
        self.assertEqual(result.data["summary"]["unchanged"], 2)
        requirement.refresh_from_db()
        self.assertEqual(requirement.version, 1)

    def test_applying_the_same_diff_twice_is_stable(self):
        roles = [{"skill_name": "Server", "needed_workers": 3}]
        RoleDiffApplier(self.event, roles, self.manager).apply()
        second = RoleDiffApplier(self.event, roles, self.manager).apply()
        self.assertEqual(second.data["summary"], {"added": 0, "removed": 0, "unchanged": 3, "total": 3})
        self.assertEqual(server_shifts(self.event).count(), 3)

    def test_pay_rate_change_cascades_to_generated_shifts(self):
        manual = server_shifts(self.event).first()
        manual.pay_rate = Decimal("35")
        manual.save()

        result = RoleDiffApplier(
            self.event, [{"skill_name": "Server", "needed_workers": 2, "pay_rate": "22"}], self.manager
        ).apply()

        self.assertTrue(result.success, result.error)
        rates = sorted(server_shifts(self.event).values_list("pay_rate", flat=True))
        self.assertEqual(rates, [Decimal("22"), Decimal("35")])
        self.assertTrue(ActivityLog.objects.filter(action="requirement_pay_rate_cascade").exists())

    def test_certification_change_reaches_existing_generated_shifts(self):
        certification = make_certification("Alcohol Service")

        result = RoleDiffApplier(
            self.event,
            [{"skill_name": "Server", "needed_workers": 2, "required_certification_id": certification.pk}],
            self.manager,
        ).apply()

        self.assertTrue(result.success, result.error)
        self.assertEqual(
            list(server_shifts(self.event).values_list("required_cert_id", flat=True)),
            [certification.pk, certification.pk],
        )
        shift = server_shifts(self.event).first()
        blocked = ShiftAssignmentService.assign(shift, make_worker(), self.manager)
        self.assertEqual(blocked.error_kind, ErrorKind.CONFLICT)
        self.assertEqual(blocked.data["conflicts"][0]["kind"], "certification_missing")

    def test_switching_certification_blocks_holders_of_the_old_one(self):
        food = make_certification("Food Handler")
        alcohol = make_certification("Alcohol Service")
        roles = [{"skill_name": "Server", "needed_workers": 2, "required_certification_id": food.pk}]
        RoleDiffApplier(self.event, roles, self.manager).apply()
        worker = make_worker()
        certify(worker, food)

        roles[0]["required_certification_id"] = alcohol.pk
        result = RoleDiffApplier(self.event, roles, self.manager).apply()

        self.assertTrue(result.success, result.error)
        blocked = ShiftAssignmentService.assign(server_shifts(self.event).first(), worker, self.manager)
        self.assertEqual(blocked.data["conflicts"][0]["kind"], "certification_missing")

    def test_clearing_the_certification_clears_generated_shifts(self):
        certification = make_certification("Alcohol Service")
        roles = [{"skill_name": "Server", "needed_workers": 2, "required_certification_id": certification.pk}]
        RoleDiffApplier(self.event, roles, self.manager).apply()
        other = make_certification("First Aid")
        kept = server_shifts(self.event).order_by("id").first()
        Shift.objects.filter(pk=kept.pk).update(required_cert_id=other.pk)

        roles[0]["required_certification_id"] = None
        result = RoleDiffApplier(self.event, roles, self.manager).apply()

        self.assertTrue(result.success, result.error)
        certs = dict(server_shifts(self.event).values_list("pk", "required_cert_id"))
        self.assertEqual(certs.pop(kept.pk), other.pk)
        self.assertEqual(list(certs.values()), [None])

    def test_schedule_change_is_applied_after_roles(self):
        new_start, new_end = at(12, days=2), at(18, days=2)
        result = RoleDiffApplier(
            self.event,
            [{"skill_name": "Server", "needed_workers": 3}],
            self.manager,
            schedule={"start_time_utc": new_start, "end_time_utc": new_end},
        ).apply()

        self.assertTrue(result.success, result.error)
        for shift in server_shifts(self.event):
            self.assertEqual((shift.start_time_utc, shift.end_time_utc), (new_start, new_end))


class PreconditionTests(TestCase):
    def setUp(self):
        self.manager = make_user()

    def test_draft_event_is_rejected(self):
        event = make_event()
        make_schedule(event)
        result = RoleDiffApplier(event, [{"skill_name": "Server", "needed_workers": 1}], self.manager).apply()
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.PRECONDITION)

    def test_started_event_is_rejected(self):
        event = make_published_event({"Server": 1}, start=at(10, days=-1), hours=48)
        result = RoleDiffApplier(event, [{"skill_name": "Server", "needed_workers": 3}], self.manager).apply()
        self.assertFalse(result.success)
        self.assertIn("already started", result.error)
        self.assertEqual(Shift.objects.filter(event=event).count(), 1)

    def test_missing_schedule_is_rejected(self):
        event = make_event(status=Event.Status.PUBLISHED)
        result = RoleDiffApplier(event, [{"skill_name": "Server", "needed_workers": 1}], self.manager).apply()
        self.assertFalse(result.success)

    def test_stale_event_version_is_rejected(self):
        event = make_published_event({"Server": 1})
        result = RoleDiffApplier(
            event, [{"skill_name": "Server", "needed_workers": 2}], self.manager, expected_version=1
        ).apply()
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.STALE_OBJECT)
        self.assertIn("modified by another user", result.error)

    def test_version_is_bumped_so_a_second_edit_of_the_same_copy_goes_stale(self):
        event = make_published_event({"Server": 1})
        version = event.version
        roles = [{"skill_name": "Server", "needed_workers": 2}]
        first = RoleDiffApplier(event, roles, self.manager, expected_version=version).apply()
        second = RoleDiffApplier(event, roles, self.manager, expected_version=version).apply()
        self.assertTrue(first.success, first.error)
        self.assertEqual(second.error_kind, ErrorKind.STALE_OBJECT)

    def test_failure_in_a_later_role_rolls_back_earlier_roles(self):
        event = make_published_event({"Server": 2, "Cook": 1})
        cook_shift = Shift.objects.get(event=event, role_needed="Cook")
        make_assignment(make_worker(skills=["Cook"]), cook_shift)

        result = RoleDiffApplier(
            event,
            [{"skill_name": "Server", "needed_workers": 4}, {"skill_name": "Cook", "needed_workers": 0}],
            self.manager,
        ).apply()

        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.FORCE_REQUIRED)
        self.assertEqual(server_shifts(event).count(), 2)

    def test_database_error_is_classified_as_internal(self):
        event = make_published_event({"Server": 1})
        with mock.patch(
            "apps.events.services.role_diff.TotalsRecalculator.recalculate",
            side_effect=DatabaseError("deadlock detected"),
        ):
            result = RoleDiffApplier(event, [{"skill_name": "Server", "needed_workers": 2}], self.manager).apply()
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.INTERNAL)
        self.assertEqual(server_shifts(event).count(), 1)
