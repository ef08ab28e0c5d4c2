# Overview: Lock-contention handling for SqlRecordStore writes.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)

# Driver messages that mean "try again", not "the statement is wrong"
TRANSIENT_MARKERS = ("database is locked", "deadlock", "could not serialize", "lock wait timeout")


def is_transient(exc: Exception) -> bool:
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, OperationalError):
        text = str(exc.orig if exc.orig is not None else exc).lower()
        return any(marker in text for marker in TRANSIENT_MARKERS)
    return False


def run_with_retry(func, session, *, label: str = "store write", attempts: int = 3, backoff_base: float = 0.05):
    """
    Run a write-and-commit callable, retrying lock contention.

    The session is rolled back before every retry. Errors that are not
    transient, and the last transient one, propagate unchanged.
    """
    attempt = 1
    while True:
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            if attempt >= attempts or not is_transient(exc):
                raise
            delay = backoff_base * (2 ** (attempt - 1))
            logger.warning("%s hit lock contention (attempt %d/%d), retrying in %.2fs",
                           label, attempt, attempts, delay)
            time.sleep(delay)
            attempt += 1
