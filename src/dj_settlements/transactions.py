"""
Retryable unit of work.

Every balance mutation runs through ``run_in_transaction``: one atomic block,
retried when the database reports a serialization failure or deadlock.
Cloud hosted databases surface these as transient errors that the client is
expected to retry.
"""
import functools
import logging
import math
import time

from django.db import DatabaseError, OperationalError, transaction

from .conf import settlement_settings
from .exceptions import (
    ConcurrencyConflict,
    InternalError,
    SettlementException,
    TransientFailure,
)

logger = logging.getLogger(__name__)

# SQLSTATE serialization_failure / deadlock_detected
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})
RETRYABLE_MESSAGES = (
    "could not serialize access",
    "deadlock detected",
    "database is locked",
    "database table is locked",
    "lock wait timeout exceeded",
)

MAX_BACKOFF_SECONDS = 2.0


def is_retryable_error(exc):
    if isinstance(exc, ConcurrencyConflict):
        return True
    if not isinstance(exc, OperationalError):
        return False
    cause = exc.__cause__ or exc
    if getattr(cause, "pgcode", None) in RETRYABLE_SQLSTATES:
        return True
    sqlstate = getattr(getattr(cause, "diag", None), "sqlstate", None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True
    message = str(exc).lower()
    return any(fragment in message for fragment in RETRYABLE_MESSAGES)


def next_retry_delay(attempt, base_seconds=None):
    if base_seconds is None:
        base_seconds = settlement_settings.SETTLEMENT_TRANSACTION_RETRY_BASE_SECONDS
    return min(base_seconds * math.pow(2, attempt - 1), MAX_BACKOFF_SECONDS)


def run_in_transaction(func, *args, retries=None, using=None, sleep=time.sleep, **kwargs):
    """
    Run ``func(*args, **kwargs)`` inside ``transaction.atomic()``.

    Serialization failures are retried up to ``retries`` times with exponential
    backoff, then surfaced as TransientFailure. Domain errors roll back and
    propagate unchanged. Any other storage error is logged and mapped to
    InternalError.

    When called inside an enclosing atomic block the work runs exactly once:
    an aborted outer transaction cannot be recovered by retrying a savepoint.
    """
    if retries is None:
        retries = settlement_settings.SETTLEMENT_TRANSACTION_MAX_RETRIES
    if transaction.get_connection(using).in_atomic_block:
        retries = 0

    attempt = 0
    while True:
        attempt += 1
        try:
            with transaction.atomic(using=using):
                return func(*args, **kwargs)
        except SettlementException as exc:
            if not isinstance(exc, ConcurrencyConflict):
                raise
            error = exc
        except DatabaseError as exc:
            if not is_retryable_error(exc):
                logger.exception(
                    "Settlement storage failure: func=%s attempt=%s",
                    getattr(func, "__qualname__", func),
                    attempt,
                )
                raise InternalError() from exc
            error = exc

        if attempt > retries:
            logger.warning(
                "Settlement transaction retries exhausted: func=%s attempts=%s error=%s",
                getattr(func, "__qualname__", func),
                attempt,
                error,
            )
            raise TransientFailure() from error

        delay = next_retry_delay(attempt)
        logger.warning(
            "Settlement transaction conflict, retrying: func=%s attempt=%s delay=%.3f error=%s",
            getattr(func, "__qualname__", func),
            attempt,
            delay,
            error,
        )
        sleep(delay)


def retryable_transaction(func=None, *, retries=None):
    """Decorator form of run_in_transaction."""

    def decorator(inner):
        @functools.wraps(inner)
        def wrapper(*args, **kwargs):
            return run_in_transaction(inner, *args, retries=retries, **kwargs)

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator
