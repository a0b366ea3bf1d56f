"""
Database locking helpers.

Two primitives back the concurrency model:

  worker_lock(worker_id)
      Serializes assignment attempts for the same worker across requests.
      On PostgreSQL this is a transaction-scoped advisory lock
      (pg_advisory_xact_lock), so it is released on commit AND on rollback
      without any explicit unlock. Other backends fall back to a row lock on
      the worker (a no-op on SQLite, which serializes writers anyway).

  serializable_atomic()
      An atomic block that requests SERIALIZABLE isolation when it opens the
      outermost PostgreSQL transaction. Nested inside an existing
      transaction it degrades to a savepoint; callers still take explicit
      row locks so the guarantee holds either way.

Both must be called inside transaction.atomic().
"""

import logging
from contextlib import contextmanager

from django.conf import settings
from django.db import connection, transaction

logger = logging.getLogger(__name__)


def _is_postgres() -> bool:
    return connection.vendor == "postgresql"


def worker_lock(worker_id: int) -> None:
    """
    Acquire the worker-scoped lock for the current transaction.

    Args:
        worker_id: Primary key of the worker whose assignments are being changed.
    """
    from apps.workforce.models import Worker

    if _is_postgres():
        namespace = settings.STAFFING["ADVISORY_LOCK_NAMESPACE"]
        with connection.cursor() as cursor:
            cursor.execute("SELECT pg_advisory_xact_lock(%s, %s)", [namespace, worker_id])
        logger.debug("Advisory lock acquired for worker=%d", worker_id)
        return

    list(Worker.objects.select_for_update().filter(pk=worker_id).values_list("pk", flat=True))


@contextmanager
def serializable_atomic():
    """Open an atomic block, SERIALIZABLE when it is the outermost PostgreSQL transaction."""
    outermost = not connection.in_atomic_block
    with transaction.atomic():
        if outermost and _is_postgres():
            with connection.cursor() as cursor:
                cursor.execute("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE")
        yield
