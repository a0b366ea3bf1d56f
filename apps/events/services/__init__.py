"""
Event orchestrators.

Each public entry point returns a core.results.ServiceResult and never
raises for an expected business failure.
"""

from apps.events.services.pay_cascade import RequirementPayCascade, update_requirement_pay_rate
from apps.events.services.publishing import complete_event, publish_event
from apps.events.services.role_diff import RoleDiffApplier, RoleRequest
from apps.events.services.schedule_sync import ScheduleTimeSync, reschedule_event, sync_shift_times
from apps.events.services.totals import Totals, TotalsRecalculator, recalculate_event_totals

__all__ = [
    "RequirementPayCascade",
    "RoleDiffApplier",
    "RoleRequest",
    "ScheduleTimeSync",
    "Totals",
    "TotalsRecalculator",
    "complete_event",
    "publish_event",
    "recalculate_event_totals",
    "reschedule_event",
    "sync_shift_times",
    "update_requirement_pay_rate",
]
