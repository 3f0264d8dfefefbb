# Overview: Row locking and bounded retry helpers shared by the sale engine services.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from .errors import StorageFailure


logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the unit of work takes the write lock with BEGIN IMMEDIATE instead.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, on_retry=None):
    """
    Execute a unit of work with retry on concurrency-related failures.

    Retries on OperationalError (locks, deadlocks, busy database) and
    StaleDataError (optimistic locking conflicts). func must open its own
    unit of work so a retry never replays committed work. Once attempts are
    exhausted the last failure is raised as StorageFailure.
    """
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            if attempt >= attempts - 1:
                raise StorageFailure(
                    "Storage unavailable, please retry",
                    {"attempts": attempts, "reason": exc.__class__.__name__},
                ) from exc
            if on_retry is not None:
                on_retry(attempt + 1, exc)
            else:
                logger.warning(
                    "Retrying after %s (attempt %d of %d)",
                    exc.__class__.__name__, attempt + 1, attempts,
                )
            time.sleep(backoff_base * (2 ** attempt))
