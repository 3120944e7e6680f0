# Overview: Row locking and retry helpers for the stock-mutating services.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)

# Lock contention and optimistic-version conflicts; everything else propagates
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Lock the transaction or item rows a stock change reads.

    NOTE: SQLite has no SELECT ... FOR UPDATE. There a concurrent stock
    write is caught by Item.version_id at flush time, and a concurrent
    status change by the guarded UPDATE in transition_status().
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Re-run an approval from a fresh read when another approval touched
    the same items first.

    Only lock timeouts (OperationalError) and stale item versions
    (StaleDataError) are retried; business errors such as
    InsufficientStockError propagate on the first attempt. The session is
    rolled back before each retry, so the retried attempt sees the winner's
    stock and status.
    """
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.warning("Giving up after %d attempts: %s", attempts, exc)
                raise
            logger.warning(
                "Concurrency conflict (attempt %d/%d), retrying: %s",
                attempt + 1, attempts, exc,
            )
            time.sleep(backoff_base * (2 ** attempt))


def atomic(func):
    """
    Run func and commit; roll back everything it did if it raises.

    Used for every service operation that writes, so a failure part-way
    through never leaves a half-applied change in the session.
    """
    try:
        result = func()
        db.session.commit()
        return result
    except Exception:
        db.session.rollback()
        raise
