"""
Event totals recalculation.

The four aggregate columns on Event (total_hours_worked, total_pay_amount,
assigned_shifts_count, total_shifts_count) are a cache over the event's
assignments. TotalsRecalculator is the only writer. Every service that
changes assignments, shift times or shift rates calls it as an explicit step
inside its own transaction.

Counting rules:
  - cancelled and no_show assignments contribute nothing
  - hours = hours_worked if logged, else the shift's scheduled duration
  - rate  = assignment rate, else shift rate, else STAFFING["DEFAULT_PAY_RATE"]
  - hours and pay are summed unrounded, then rounded half-up to 2 places

Two strategies compute the same numbers:
  iterate    loads the active assignments and sums effective values in Python
  aggregate  groups rows in the database by (shift, hourly_rate) and only
             multiplies the per-group sums in Python
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone

from apps.audit.writer import log_activity
from apps.events.models import Event
from apps.scheduling.models import Assignment, default_pay_rate
from core.results import ServiceResult, service_boundary

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

ITERATE = "iterate"
AGGREGATE = "aggregate"
STRATEGIES = (ITERATE, AGGREGATE)


@dataclass(frozen=True)
class Totals:
    hours: Decimal
    pay: Decimal
    assigned_shifts_count: int
    total_shifts_count: int

    def as_dict(self) -> dict:
        return {
            "total_hours_worked": self.hours,
            "total_pay_amount": self.pay,
            "assigned_shifts_count": self.assigned_shifts_count,
            "total_shifts_count": self.total_shifts_count,
        }


def _round(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


class TotalsRecalculator:
    """
    Recompute and store an event's aggregate columns.

    Usage:
        totals = TotalsRecalculator(event).recalculate()
        totals = TotalsRecalculator(event, actor=manager, strategy="aggregate").recalculate()

    The columns are written with a queryset update: no model validation, no
    version bump, so a totals refresh never makes a manager's copy of the
    event stale. An ActivityLog entry is written only when an actor is given
    and the stored values actually changed.
    """

    def __init__(self, event: Event, actor=None, strategy: Optional[str] = None):
        self.event = event
        self.actor = actor
        self.strategy = strategy or settings.STAFFING["TOTALS_STRATEGY"]
        if self.strategy not in STRATEGIES:
            raise ValueError(f"Unknown totals strategy {self.strategy!r}; expected one of {STRATEGIES}")

    def _active_assignments(self):
        return Assignment.objects.filter(shift__event_id=self.event.pk).exclude(
            status__in=Assignment.INACTIVE_STATUSES
        )

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _compute_iterate(self) -> tuple[Decimal, Decimal, int]:
        hours = Decimal("0")
        pay = Decimal("0")
        shift_ids = set()
        for assignment in self._active_assignments().select_related("shift"):
            hours += assignment.effective_hours
            pay += assignment.effective_pay
            shift_ids.add(assignment.shift_id)
        return hours, pay, len(shift_ids)

    def _compute_aggregate(self) -> tuple[Decimal, Decimal, int]:
        groups = (
            self._active_assignments()
            .order_by()
            .values(
                "shift_id",
                "shift__start_time_utc",
                "shift__end_time_utc",
                "shift__pay_rate",
                "hourly_rate",
            )
            .annotate(
                rows=Count("id"),
                logged_rows=Count("hours_worked"),
                logged_hours=Sum("hours_worked"),
            )
        )

        fallback_rate = default_pay_rate()
        hours = Decimal("0")
        pay = Decimal("0")
        shift_ids = set()
        for group in groups:
            seconds = int((group["shift__end_time_utc"] - group["shift__start_time_utc"]).total_seconds())
            duration = Decimal(seconds) / Decimal(3600)
            group_hours = Decimal(group["logged_hours"] or 0) + (group["rows"] - group["logged_rows"]) * duration

            rate = group["hourly_rate"]
            if rate is None:
                rate = group["shift__pay_rate"]
            if rate is None:
                rate = fallback_rate

            hours += group_hours
            pay += group_hours * Decimal(rate)
            shift_ids.add(group["shift_id"])
        return hours, pay, len(shift_ids)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def compute(self) -> Totals:
        """Compute the totals from current assignments without writing them."""
        if self.strategy == AGGREGATE:
            hours, pay, assigned = self._compute_aggregate()
        else:
            hours, pay, assigned = self._compute_iterate()
        return Totals(
            hours=_round(hours),
            pay=_round(pay),
            assigned_shifts_count=assigned,
            total_shifts_count=self.event.shifts.count(),
        )

    def recalculate(self) -> Totals:
        """
        Recompute the aggregates and store them on the event.

        The event row is locked first so two concurrent refreshes cannot
        interleave and leave the older computation as the stored value.

        Returns:
            The freshly computed Totals.
        """
        with transaction.atomic():
            stored = (
                Event.objects.select_for_update()
                .filter(pk=self.event.pk)
                .values("total_hours_worked", "total_pay_amount", "assigned_shifts_count", "total_shifts_count")
                .get()
            )
            totals = self.compute()
            values = totals.as_dict()

            Event.objects.filter(pk=self.event.pk).update(updated_at_utc=timezone.now(), **values)
            for name, value in values.items():
                setattr(self.event, name, value)

            if self.actor is not None and stored != values:
                log_activity(
                    self.actor,
                    "Event",
                    self.event.pk,
                    "totals_recalculated",
                    before=stored,
                    after=values,
                )

        logger.info(
            "Totals recalculated for event=%d (%s): hours=%s pay=%s assigned=%d/%d",
            self.event.pk,
            self.strategy,
            totals.hours,
            totals.pay,
            totals.assigned_shifts_count,
            totals.total_shifts_count,
        )
        return totals


@service_boundary("recalculate event totals")
def recalculate_event_totals(event: Event, actor=None, strategy: Optional[str] = None) -> ServiceResult:
    """Recalculate an event's totals and report them as a ServiceResult."""
    totals = TotalsRecalculator(event, actor=actor, strategy=strategy).recalculate()
    return ServiceResult.ok(event=event, totals=totals.as_dict())
