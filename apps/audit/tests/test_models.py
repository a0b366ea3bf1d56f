from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from django.test import SimpleTestCase, TestCase

from apps.accounts.models import User
from apps.audit.models import ActivityLog
from apps.audit.writer import log_activity, model_snapshot, snapshot
from apps.workforce.models import Certification, Worker, WorkerCertification


class TestActivityLogModel(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            email="audit@example.com",
            password="pass123",
            first_name="Audit",
            last_name="Tester",
        )

    def test_log_activity_creation_and_str(self):
        log = log_activity(self.user, "Shift", 7, "created", after={"capacity": 1})
        self.assertIn("Shift#7 created", str(log))
        self.assertIn("audit@example.com", str(log))
        self.assertEqual(log.actor, self.user)
        self.assertIsNone(log.before_json)

    def test_system_entries_have_no_actor(self):
        log = log_activity(None, "Event", 1, "totals_recalculated")
        self.assertIn("System", str(log))

    def test_log_is_immutable(self):
        log = log_activity(self.user, "Assignment", 1, "cancelled", before={"status": "assigned"})
        log.action = "created"
        with self.assertRaises(RuntimeError):
            log.save()

    def test_log_cannot_be_deleted(self):
        log = log_activity(self.user, "Assignment", 1, "cancelled")
        with self.assertRaises(RuntimeError):
            log.delete()
        self.assertTrue(ActivityLog.objects.filter(pk=log.pk).exists())

    def test_actor_removal_keeps_the_log(self):
        log = log_activity(self.user, "Event", 1, "published")
        self.user.delete()
        log.refresh_from_db()
        self.assertIsNone(log.actor)

    def test_model_snapshot_uses_foreign_key_ids(self):
        worker = Worker.objects.create(first_name="Ana", last_name="Lopez", skills=["Server"])
        certification = Certification.objects.create(name="Food Handler")
        held = WorkerCertification.objects.create(worker=worker, certification=certification)
        self.assertEqual(
            model_snapshot(held, ["worker", "certification", "expires_at_utc"]),
            {"certification_id": certification.pk, "expires_at_utc": None, "worker_id": worker.pk},
        )


class SnapshotTests(SimpleTestCase):
    def test_values_are_reduced_to_primitives(self):
        moment = datetime(2026, 5, 1, 18, 30, tzinfo=dt_timezone.utc)
        self.assertEqual(
            snapshot({"rate": Decimal("18.50"), "start": moment, "ids": (3, 1), "note": None}),
            {"ids": [3, 1], "note": None, "rate": 18.5, "start": "2026-05-01T18:30:00+00:00"},
        )

    def test_keys_are_sorted(self):
        self.assertEqual(list(snapshot({"b": 1, "a": {"d": 2, "c": 3}})), ["a", "b"])
        self.assertEqual(list(snapshot({"a": {"d": 2, "c": 3}})["a"]), ["c", "d"])

    def test_none_stays_none(self):
        self.assertIsNone(snapshot(None))
