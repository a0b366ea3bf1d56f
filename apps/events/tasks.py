"""
Celery tasks for event staffing.

Tasks:
  rebuild_event_totals  runs hourly; re-derives the aggregate columns of
                        every live event from its assignments.

Registered in CELERY_BEAT_SCHEDULE (see settings/base.py).

Design notes:
  - Idempotent: recomputing totals from current assignments always yields
    the same columns, so overlapping runs are harmless.
  - Repairs totals left stale when the best-effort refresh after a shift
    time sync failed.
  - Each event is recalculated in its own transaction; one failing event
    is counted and logged, the sweep carries on.
"""

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.db.models import Q
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task(name="events.rebuild_event_totals")
def rebuild_event_totals() -> dict:
    """
    Recalculate totals for published, assigned and recently completed events.

    Returns:
        Dict with counts of events rebuilt and failed.
    """
    from apps.events.models import Event
    from apps.events.services.totals import recalculate_event_totals

    cutoff = timezone.now() - timedelta(days=settings.STAFFING["TOTALS_REBUILD_LOOKBACK_DAYS"])
    live = Event.objects.filter(
        Q(status__in=[Event.Status.PUBLISHED, Event.Status.ASSIGNED])
        | Q(status=Event.Status.COMPLETED, completed_at_utc__gte=cutoff)
    ).order_by("pk")

    rebuilt = 0
    failed = 0
    for event in live.iterator():
        result = recalculate_event_totals(event)
        if result:
            rebuilt += 1
        else:
            failed += 1
            logger.error("Totals rebuild failed for event=%d: %s", event.pk, result.error)

    if rebuilt or failed:
        logger.info("Rebuilt totals for %d event(s), %d failed.", rebuilt, failed)

    return {"rebuilt": rebuilt, "failed": failed}
