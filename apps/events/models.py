"""
Event models for the staffing engine.

An Event is a catering job. It owns:
  - EventSchedule (1:1): the canonical time window of the job
  - EventSkillRequirement (1:N): "we need N workers of skill X at rate R"
  - Shift (1:N, apps.scheduling): one unit-capacity row per needed worker

The aggregate columns on Event (hours, pay, shift counts) are a cache. They
are written only by TotalsRecalculator and can always be rebuilt from the
current assignments.

All datetimes are stored as UTC in the *_utc columns.
"""

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.versioning import VersionedModel


class Event(VersionedModel):
    """
    A catering job that needs staffing.

    Lifecycle:
      DRAFT -> requirements and schedule attached
      DRAFT -> PUBLISHED (shift rows generated from requirements)
      PUBLISHED -> edited through RoleDiffApplier, filled through assignments
      PUBLISHED/ASSIGNED -> COMPLETED once the schedule has ended
    """

    class Status(models.TextChoices):
        DRAFT = "draft", _("Draft")
        PUBLISHED = "published", _("Published")
        ASSIGNED = "assigned", _("Assigned")
        COMPLETED = "completed", _("Completed")
        DELETED = "deleted", _("Deleted")

    title = models.CharField(max_length=200)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.DRAFT)
    check_in_instructions = models.TextField(blank=True)

    # Derived aggregates, refreshed by TotalsRecalculator only
    total_hours_worked = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0"))
    total_pay_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    assigned_shifts_count = models.PositiveIntegerField(default=0)
    total_shifts_count = models.PositiveIntegerField(default=0)

    published_at_utc = models.DateTimeField(null=True, blank=True)
    completed_at_utc = models.DateTimeField(null=True, blank=True)
    completion_notes = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_events",
    )
    created_at_utc = models.DateTimeField(auto_now_add=True)
    updated_at_utc = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at_utc"]
        indexes = [
            models.Index(fields=["status"], name="event_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.title} [{self.get_status_display()}]"

    @property
    def schedule(self):
        """Return the EventSchedule, or None if none is attached yet."""
        try:
            return self.event_schedule
        except EventSchedule.DoesNotExist:
            return None

    @property
    def has_started(self) -> bool:
        schedule = self.schedule
        return schedule is not None and schedule.start_time_utc <= timezone.now()

    @property
    def has_ended(self) -> bool:
        schedule = self.schedule
        return schedule is not None and schedule.end_time_utc < timezone.now()

    def total_workers_needed(self) -> int:
        return sum(self.skill_requirements.values_list("needed_workers", flat=True))

    def lock(self) -> "Event":
        """
        Take a row lock on this event and reload it from the database.

        Must be called inside transaction.atomic(). The lock is held until
        the enclosing transaction ends.
        """
        Event.lock_row(self.pk)
        self.refresh_from_db()
        return self

    @classmethod
    def lock_row(cls, pk) -> None:
        """
        Take the row lock on event `pk` without loading it.

        Every write path that touches an event's shifts or assignments takes
        this lock first: event, then worker, then shift, then assignment.
        """
        list(cls.objects.select_for_update().filter(pk=pk).values_list("pk", flat=True))


class EventSchedule(VersionedModel):
    """The canonical time window of an event. Event-owned shifts mirror it."""

    event = models.OneToOneField(Event, on_delete=models.CASCADE, related_name="event_schedule")
    start_time_utc = models.DateTimeField()
    end_time_utc = models.DateTimeField()
    break_minutes = models.PositiveIntegerField(default=0)

    created_at_utc = models.DateTimeField(auto_now_add=True)
    updated_at_utc = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.event.title}: {self.start_time_utc:%Y-%m-%d %H:%M} - {self.end_time_utc:%H:%M} UTC"

    def clean(self) -> None:
        if self.start_time_utc and self.end_time_utc and self.end_time_utc <= self.start_time_utc:
            raise ValidationError({"end_time_utc": "must be after start time"})

    @property
    def duration_hours(self) -> float:
        return (self.end_time_utc - self.start_time_utc).total_seconds() / 3600


class EventSkillRequirement(VersionedModel):
    """
    How many workers of one skill an event needs, and at what rate.

    `needed_workers` is the requested headcount. The matching Shift rows are
    kept in step by RoleDiffApplier; staffing progress of a single shift is
    never read from here.
    """

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="skill_requirements")
    skill_name = models.CharField(max_length=100)
    needed_workers = models.PositiveIntegerField(default=1)
    pay_rate = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )
    required_certification = models.ForeignKey(
        "workforce.Certification",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="skill_requirements",
    )
    description = models.TextField(blank=True)

    created_at_utc = models.DateTimeField(auto_now_add=True)
    updated_at_utc = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["skill_name"]
        constraints = [
            models.UniqueConstraint(fields=["event", "skill_name"], name="unique_skill_per_event"),
        ]

    def __str__(self) -> str:
        return f"{self.event.title}: {self.needed_workers} x {self.skill_name}"
