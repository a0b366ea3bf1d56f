"""
Requirement pay-rate cascade.

When a skill requirement's pay rate changes, the auto-generated shifts it
produced follow, unless a manager has given a shift its own rate. A shift
follows when its rate is still null or still equal to the requirement's
previous rate; manually-created shifts and manual overrides keep theirs.

Cascade:
    requirement.pay_rate -> matching shifts (one bulk update) -> totals -> log

Every step is critical: a failure propagates and rolls back the enclosing
requirement update, so the requirement and its shifts never disagree.
"""

import logging
from decimal import Decimal
from typing import Optional

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from apps.audit.writer import log_activity
from apps.events.models import Event, EventSkillRequirement
from apps.events.services.totals import TotalsRecalculator
from apps.scheduling.models import Shift
from core.results import ServiceResult, service_boundary

logger = logging.getLogger(__name__)


def _as_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


class RequirementPayCascade:
    """
    Push a requirement's new pay rate to its auto-generated shifts.

    Usage:
        updated = RequirementPayCascade(requirement, old_rate, new_rate, actor).cascade()
    """

    def __init__(self, requirement: EventSkillRequirement, previous_rate, new_rate, actor):
        self.requirement = requirement
        self.previous_rate = _as_decimal(previous_rate)
        self.new_rate = _as_decimal(new_rate)
        self.actor = actor

    def cascade(self) -> int:
        """
        Apply the rate to matching shifts and return how many were updated.

        A null new rate, or one equal to the previous rate, is a no-op.
        """
        if self.new_rate is None or self.new_rate == self.previous_rate:
            return 0

        rate_matches = Q(pay_rate__isnull=True)
        if self.previous_rate is not None:
            rate_matches |= Q(pay_rate=self.previous_rate)

        event = self.requirement.event

        with transaction.atomic():
            Event.lock_row(event.pk)
            updated = (
                Shift.objects.filter(
                    event_id=event.pk,
                    role_needed=self.requirement.skill_name,
                    auto_generated=True,
                )
                .filter(rate_matches)
                .update(pay_rate=self.new_rate, updated_at_utc=timezone.now())
            )

            TotalsRecalculator(event).recalculate()

            log_activity(
                self.actor,
                "EventSkillRequirement",
                self.requirement.pk,
                "requirement_pay_rate_cascade",
                before={"pay_rate": self.previous_rate},
                after={"pay_rate": self.new_rate, "updated_shifts_count": updated},
            )

        logger.info(
            "Pay rate %s -> %s cascaded to %d shift(s) for requirement=%d (%s)",
            self.previous_rate,
            self.new_rate,
            updated,
            self.requirement.pk,
            self.requirement.skill_name,
        )
        return updated


@service_boundary("update requirement pay rate")
def update_requirement_pay_rate(
    requirement: EventSkillRequirement, new_rate, actor, expected_version=None
) -> ServiceResult:
    """
    Change a requirement's pay rate and cascade it to its shifts atomically.

    Args:
        requirement: The requirement to update.
        new_rate: The new hourly rate (None clears it without cascading).
        actor: The user making the change.
        expected_version: Requirement version the caller edited, or None.

    Returns:
        ServiceResult with the requirement and updated_shifts_count.
    """
    try:
        with transaction.atomic():
            Event.lock_row(requirement.event_id)
            requirement.check_version(expected_version)
            previous_rate = requirement.pay_rate
            requirement.pay_rate = new_rate
            # full_clean inside save_versioned normalises the rate to a Decimal
            requirement.save_versioned(["pay_rate"])
            updated = RequirementPayCascade(requirement, previous_rate, requirement.pay_rate, actor).cascade()
    except Exception:
        # The row was rolled back; drop the in-memory edit and version bump too
        requirement.refresh_from_db()
        raise
    return ServiceResult.ok(requirement=requirement, updated_shifts_count=updated)
