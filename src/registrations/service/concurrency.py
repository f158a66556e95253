"""Optimistic concurrency primitives shared by every engine component.

Rows are changed with `UPDATE ... WHERE pk = %s AND version = %s`. A writer that
loses the race sees zero affected rows and raises ConcurrencyConflict, which rolls
back the surrounding `transaction.atomic()` block. `retry_on_conflict` then re-runs
the whole operation against fresh state.
"""

import typing as t

import structlog
from django.conf import settings
from django.utils import timezone
from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_attempt, wait_random_exponential

from common.models import VersionedModel
from registrations.exceptions import ConcurrencyConflict

logger = structlog.get_logger(__name__)

M = t.TypeVar("M", bound=VersionedModel)
P = t.ParamSpec("P")
R = t.TypeVar("R")


def conditional_update(instance: M, **changes: t.Any) -> M:
    """Apply `changes` to the row only if it still has the version we read.

    Values must be plain values computed from the instance as read, never F() expressions:
    the version guard is what makes them safe.

    Raises:
        ConcurrencyConflict: The row was changed (or removed) since it was read.
    """
    model = type(instance)
    now = timezone.now()
    updated = model._default_manager.filter(pk=instance.pk, version=instance.version).update(
        version=instance.version + 1, updated_at=now, **changes
    )
    if updated != 1:
        logger.info(
            "conditional_update_conflict",
            model=model.__name__,
            pk=str(instance.pk),
            expected_version=instance.version,
        )
        raise ConcurrencyConflict()

    for field, value in changes.items():
        setattr(instance, field, value)
    instance.version += 1
    instance.updated_at = now
    return instance


def max_attempts() -> int:
    return max(settings.REGISTRATION_MAX_RETRIES, 1)


def _stop_after_configured_attempts(retry_state: RetryCallState) -> bool:
    return stop_after_attempt(max_attempts())(retry_state)


def conflict_backoff(retry_state: RetryCallState) -> float:
    """Full-jitter exponential backoff: up to base * 2**(attempt - 1) seconds."""
    return wait_random_exponential(multiplier=settings.REGISTRATION_RETRY_BASE_DELAY)(retry_state)


def _log_retry(retry_state: RetryCallState) -> None:
    logger.debug(
        "concurrency_conflict_retry",
        operation=getattr(retry_state.fn, "__name__", repr(retry_state.fn)),
        attempt=retry_state.attempt_number,
        delay=retry_state.upcoming_sleep,
    )


def _log_exhausted(retry_state: RetryCallState) -> None:
    if retry_state.attempt_number >= max_attempts():
        logger.warning(
            "concurrency_conflict_retries_exhausted",
            operation=getattr(retry_state.fn, "__name__", repr(retry_state.fn)),
            attempts=retry_state.attempt_number,
        )


def retry_on_conflict(func: t.Callable[P, R]) -> t.Callable[P, R]:
    """Re-run an engine operation when it loses an optimistic-concurrency race.

    The wrapped callable must own its transaction: it re-reads everything it needs on
    each attempt. Attempts are spaced with exponential backoff and full jitter; once
    `REGISTRATION_MAX_RETRIES` attempts have failed the conflict surfaces to the caller.
    Any other error propagates on the first attempt.
    """
    return retry(
        retry=retry_if_exception_type(ConcurrencyConflict),
        stop=_stop_after_configured_attempts,
        wait=conflict_backoff,
        after=_log_exhausted,
        before_sleep=_log_retry,
        reraise=True,
    )(func)
