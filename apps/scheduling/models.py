"""
Scheduling models for the staffing engine.

The core of the platform. Defines:
  - Shift: a time block needing `capacity` workers of one role
  - Assignment: links a worker to a shift

Shifts are either event-owned (event set; times mirror the EventSchedule and
are moved by ScheduleTimeSync) or standalone (event null; independent times).
Shifts generated from an EventSkillRequirement are auto_generated and always
have capacity 1, so "5 servers" is five rows, not one row of capacity 5.

Two counting rules coexist:
  - staffing progress / fully staffed counts EVERY assignment row, whatever
    its status (a slot once consumed stays consumed)
  - totals (hours, pay) and conflict checks count only ACTIVE assignments,
    i.e. everything except cancelled and no_show

All datetimes are stored as UTC.
"""

from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.versioning import VersionedModel


def default_pay_rate() -> Decimal:
    """Hourly rate used when neither assignment nor shift has one."""
    return Decimal(str(settings.STAFFING["DEFAULT_PAY_RATE"]))


class Shift(models.Model):
    """
    A scheduled work block requiring `capacity` workers with `role_needed`.

    Overnight shifts are stored as a single record where end > start across
    the date boundary; no special handling needed.
    """

    event = models.ForeignKey(
        "events.Event",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="shifts",
        help_text="Owning event. Null for standalone shifts.",
    )
    event_skill_requirement = models.ForeignKey(
        "events.EventSkillRequirement",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="shifts",
    )

    client_name = models.CharField(max_length=200, blank=True)
    role_needed = models.CharField(max_length=100)

    # Times stored as UTC, always.
    start_time_utc = models.DateTimeField()
    end_time_utc = models.DateTimeField()

    capacity = models.PositiveIntegerField(default=1)
    pay_rate = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )
    auto_generated = models.BooleanField(
        default=False,
        help_text="Created from a skill requirement; eligible for pay-rate cascade.",
    )
    required_cert = models.ForeignKey(
        "workforce.Certification",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="shifts",
    )
    notes = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_shifts",
    )
    created_at_utc = models.DateTimeField(auto_now_add=True)
    updated_at_utc = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["start_time_utc", "id"]
        indexes = [
            models.Index(fields=["event", "role_needed"], name="shift_event_role_idx"),
            models.Index(fields=["start_time_utc", "end_time_utc"], name="shift_time_range_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.client_name or 'Shift'} | {self.role_needed} | {self.start_time_utc:%Y-%m-%d %H:%M} UTC"

    def clean(self) -> None:
        errors = {}
        if self.capacity is not None and self.capacity <= 0:
            errors["capacity"] = "must be greater than 0"
        if self.auto_generated and self.capacity != 1:
            errors["capacity"] = "auto-generated shifts must have capacity 1"
        if self.start_time_utc and self.end_time_utc and self.end_time_utc <= self.start_time_utc:
            errors["end_time_utc"] = "must be after start time"
        if errors:
            raise ValidationError(errors)

    @property
    def is_standalone(self) -> bool:
        return self.event_id is None

    @property
    def duration_hours(self) -> Decimal:
        """Scheduled duration in decimal hours, exact to the second."""
        seconds = int((self.end_time_utc - self.start_time_utc).total_seconds())
        return Decimal(seconds) / Decimal(3600)

    @property
    def required_certification_id(self):
        """The certification this shift needs, inherited from its requirement if unset."""
        if self.required_cert_id:
            return self.required_cert_id
        if self.event_skill_requirement_id:
            return self.event_skill_requirement.required_certification_id
        return None

    @property
    def assigned_count(self) -> int:
        """Every persisted assignment row, cancelled and no_show included."""
        return self.assignments.count()

    @property
    def active_assignment_count(self) -> int:
        return self.assignments.exclude(status__in=Assignment.INACTIVE_STATUSES).count()

    @property
    def is_fully_staffed(self) -> bool:
        return self.assigned_count >= self.capacity

    @property
    def staffing_progress(self) -> dict:
        """
        Return {"assigned", "required", "percentage"} for this shift.

        `required` is the shift's own capacity, never the parent requirement's
        needed_workers. Overbooked shifts report more than 100 percent.
        """
        assigned = self.assigned_count
        required = self.capacity
        percentage = 0
        if required > 0:
            percentage = int(
                (Decimal(100 * assigned) / Decimal(required)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            )
        return {"assigned": assigned, "required": required, "percentage": percentage}

    @property
    def has_ended(self) -> bool:
        return self.end_time_utc < timezone.now()


class Assignment(VersionedModel):
    """
    Links a worker to a shift.

    Status machine:
      ASSIGNED -> CONFIRMED -> COMPLETED
      ASSIGNED/CONFIRMED -> CANCELLED (removed from the job)
      ASSIGNED/CONFIRMED -> NO_SHOW

    Cancelled and no-show rows are kept: they still count toward staffing
    progress but never toward hours, pay or double-booking checks.
    """

    class Status(models.TextChoices):
        ASSIGNED = "assigned", _("Assigned")
        CONFIRMED = "confirmed", _("Confirmed")
        COMPLETED = "completed", _("Completed")
        CANCELLED = "cancelled", _("Cancelled")
        NO_SHOW = "no_show", _("No-show")

    INACTIVE_STATUSES = (Status.CANCELLED, Status.NO_SHOW)
    APPROVABLE_STATUSES = (Status.ASSIGNED, Status.CONFIRMED, Status.COMPLETED)

    shift = models.ForeignKey(Shift, on_delete=models.CASCADE, related_name="assignments")
    worker = models.ForeignKey(
        "workforce.Worker",
        on_delete=models.PROTECT,
        related_name="assignments",
    )
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ASSIGNED)

    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assignments_made",
    )
    assigned_at_utc = models.DateTimeField(default=timezone.now)

    hours_worked = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("24"))],
    )
    hourly_rate = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )

    approved = models.BooleanField(default=False)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assignments_approved",
    )
    approved_at_utc = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    updated_at_utc = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["assigned_at_utc", "id"]
        indexes = [
            models.Index(fields=["worker", "status"], name="assignment_worker_status_idx"),
            models.Index(fields=["shift", "status"], name="assignment_shift_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.worker} | {self.shift} [{self.get_status_display()}]"

    @property
    def is_active(self) -> bool:
        return self.status not in self.INACTIVE_STATUSES

    @property
    def effective_hours(self) -> Decimal:
        """Logged hours if present, otherwise the shift's scheduled duration."""
        if self.hours_worked is not None:
            return Decimal(self.hours_worked)
        return self.shift.duration_hours

    @property
    def effective_hourly_rate(self) -> Decimal:
        """Assignment rate, else shift rate, else the configured default."""
        if self.hourly_rate is not None:
            return Decimal(self.hourly_rate)
        if self.shift.pay_rate is not None:
            return Decimal(self.shift.pay_rate)
        return default_pay_rate()

    @property
    def effective_pay(self) -> Decimal:
        return self.effective_hours * self.effective_hourly_rate

    @property
    def can_approve(self) -> bool:
        """Hours can be approved once the shift has ended."""
        return self.shift.has_ended
