"""
Transaction helpers — bounded retry on serialization failures.

Every ledger primitive and workflow runs under retry_on_conflict.
Workflows read their input before the wrapped body, so a retry sees
the same items. Only the outermost call retries: once inside an atomic
block the transaction is already broken by the failure, so nested calls
convert it into ConcurrencyConflict and let it propagate to the
outermost wrapper, which re-runs the whole unit of work.
"""

import functools
import logging
import time

from django.db import OperationalError, transaction

from storeman.conf import storeman_settings
from storeman.exceptions import ConcurrencyConflict

logger = logging.getLogger('storeman')

# PostgreSQL serialization_failure, deadlock_detected
CONFLICT_SQLSTATES = frozenset({'40001', '40P01'})


def is_conflict(exc: OperationalError) -> bool:
    """Whether a database error is a retryable serialization conflict."""
    cause = exc.__cause__
    sqlstate = getattr(cause, 'sqlstate', None) or getattr(cause, 'pgcode', None)
    if sqlstate in CONFLICT_SQLSTATES:
        return True
    message = str(exc).lower()
    return 'database is locked' in message or 'deadlock detected' in message


def retry_on_conflict(func):
    """Retry func on serialization conflicts with exponential backoff."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if transaction.get_connection().in_atomic_block:
            try:
                return func(*args, **kwargs)
            except OperationalError as exc:
                if is_conflict(exc):
                    raise ConcurrencyConflict(operation=func.__qualname__) from exc
                raise

        attempts = max(1, storeman_settings.CONFLICT_RETRIES)
        delay = storeman_settings.CONFLICT_BACKOFF_SECONDS

        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except (OperationalError, ConcurrencyConflict) as exc:
                if isinstance(exc, OperationalError) and not is_conflict(exc):
                    raise
                if attempt == attempts:
                    logger.error(
                        "tx.conflict.exhausted",
                        extra={"operation": func.__qualname__, "attempts": attempts},
                    )
                    raise ConcurrencyConflict(
                        operation=func.__qualname__,
                        attempts=attempts,
                    ) from exc
                logger.warning(
                    "tx.conflict.retry",
                    extra={
                        "operation": func.__qualname__,
                        "attempt": attempt,
                        "delay": delay,
                    },
                )
                if delay:
                    time.sleep(delay)
                delay *= 2

    return wrapper
