"""
Activity log writer.

All services write audit entries through `log_activity`, inside the same
transaction as the change they describe. Snapshots are normalised into
key-ordered dicts of primitives (str, int, float, bool, None) so the stored
JSON has a fixed, testable shape:

    Decimal   -> float
    datetime  -> ISO-8601 string
    date      -> ISO-8601 string
    model     -> primary key
    list/dict -> normalised recursively (dict keys sorted)
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

from django.db import models

from apps.audit.models import ActivityLog

logger = logging.getLogger(__name__)


def primitive(value: Any) -> Any:
    """Convert a single value into its JSON primitive form."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, models.Model):
        return value.pk
    if isinstance(value, dict):
        return snapshot(value)
    if isinstance(value, (list, tuple, set)):
        return [primitive(item) for item in value]
    return str(value)


def snapshot(values: Optional[dict]) -> Optional[dict]:
    """Return a key-ordered copy of `values` with primitive leaves."""
    if values is None:
        return None
    return {str(key): primitive(values[key]) for key in sorted(values, key=str)}


def model_snapshot(instance: models.Model, fields: Optional[Iterable[str]] = None) -> dict:
    """
    Snapshot the concrete fields of a model instance.

    Foreign keys are recorded by their `<name>_id` attribute.

    Args:
        instance: The model instance to capture.
        fields: Optional subset of field names; defaults to all concrete fields.

    Returns:
        A key-ordered dict of primitives.
    """
    wanted = set(fields) if fields is not None else None
    values = {}
    for field in instance._meta.concrete_fields:
        if wanted is not None and field.name not in wanted and field.attname not in wanted:
            continue
        values[field.attname] = getattr(instance, field.attname)
    return snapshot(values)


def log_activity(
    actor,
    entity_type: str,
    entity_id: Optional[int],
    action: str,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    note: str = "",
) -> ActivityLog:
    """
    Append one entry to the activity log.

    Args:
        actor: The user performing the action (None for system jobs).
        entity_type: Model name of the changed entity.
        entity_id: Primary key of the changed entity.
        action: Action identifier, e.g. "created".
        before: State before the change (None for creations).
        after: State after the change (None for deletions).
        note: Optional free-text context such as a reason.

    Returns:
        The persisted ActivityLog row.
    """
    entry = ActivityLog.objects.create(
        actor=actor,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        before_json=snapshot(before),
        after_json=snapshot(after),
        note=note or "",
    )
    logger.debug("Activity logged: %s#%s %s", entity_type, entity_id, action)
    return entry
