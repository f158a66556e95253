"""Turning freed seats into time-boxed offers for the head of the waitlist.

Each freed seat produces at most one outstanding offer. When an offer is declined or
expires its seat is released and offered to the next head straight away, inside the
same transaction, so cascades are strictly sequential per event.

The promotion deadline is data on the record, not a timer: `accept` re-checks it at
the moment of acceptance and `expire_overdue` sweeps offers nobody acted on.
"""

from datetime import datetime, timedelta
from uuid import UUID

import structlog
from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from common.observability import get_tracer
from registrations.exceptions import ConcurrencyConflict, InvalidState, PromotionExpired, RegistrationError
from registrations.models import EventCapacity, Registration

from . import capacity_ledger, publisher, waitlist
from . import registration_store as store
from .concurrency import retry_on_conflict

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)


def promotion_window() -> timedelta:
    return timedelta(hours=settings.REGISTRATION_PROMOTION_WINDOW_HOURS)


def promote_next(event_id: UUID, *, now: datetime | None = None) -> Registration | None:
    """Offer a free seat to the head of the waitlist.

    Must run inside the caller's transaction: the status change, the queue compaction and
    the ledger update commit or roll back together.

    Returns:
        The registration now holding the offer, or None if there was no free seat or
        nobody waiting.
    """
    now = now or timezone.now()
    with tracer.start_as_current_span("registrations.promote_next") as span:
        span.set_attribute("event_id", str(event_id))
        ledger = capacity_ledger.get_ledger(event_id)
        if ledger.is_full:
            return None
        candidate = waitlist.head(event_id)
        if candidate is None:
            logger.info("promotion_skipped_empty_waitlist", event_id=str(event_id))
            return None

        position = candidate.waitlist_position or 1
        store.transition(
            candidate,
            Registration.Status.PROMOTION_PENDING,
            promotion_deadline=now + promotion_window(),
            promoted_at=now,
        )
        waitlist.compact(event_id, position)
        capacity_ledger.hold_for_promotion(ledger)

    logger.info(
        "registration_promoted",
        event_id=str(event_id),
        registration_id=str(candidate.id),
        promotion_deadline=candidate.promotion_deadline.isoformat() if candidate.promotion_deadline else None,
    )
    publisher.publish(publisher.EventKind.PROMOTED, publisher.registration_payload(candidate))
    return candidate


def resolve_offer(registration: Registration, reason: str, *, now: datetime) -> Registration | None:
    """Close an outstanding offer and pass its seat on to the next head.

    Must run inside the caller's transaction.

    Returns:
        The next registration holding an offer, if the cascade produced one.
    """
    store.transition(
        registration,
        Registration.Status.CANCELLED,
        cancelled_at=now,
        cancellation_reason=reason,
    )
    kind = (
        publisher.EventKind.EXPIRED
        if reason == Registration.CancellationReason.EXPIRED
        else publisher.EventKind.DECLINED
    )
    publisher.publish(kind, publisher.registration_payload(registration))
    logger.info(
        "promotion_resolved",
        event_id=str(registration.event_id),
        registration_id=str(registration.id),
        reason=reason,
    )
    if not capacity_ledger.release(registration.event_id):
        return None
    return promote_next(registration.event_id, now=now)


def _load_pending_offer(registration_id: UUID, now: datetime) -> Registration:
    registration = store.get_registration(registration_id)
    if registration.status != Registration.Status.PROMOTION_PENDING:
        raise InvalidState("There is no pending promotion offer for this registration.")
    if registration.promotion_deadline is None or now > registration.promotion_deadline:
        raise PromotionExpired()
    return registration


@retry_on_conflict
def accept(registration_id: UUID) -> Registration:
    """Accept a promotion offer before its deadline.

    Raises:
        RegistrationNotFound: Unknown registration.
        InvalidState: The registration holds no pending offer.
        PromotionExpired: The deadline has passed, even if no sweep has run yet.
    """
    now = timezone.now()
    with transaction.atomic():
        registration = _load_pending_offer(registration_id, now)
        store.transition(registration, Registration.Status.REGISTERED)
        publisher.publish(publisher.EventKind.ACCEPTED, publisher.registration_payload(registration))
    logger.info("promotion_accepted", registration_id=str(registration.id), event_id=str(registration.event_id))
    return registration


@retry_on_conflict
def decline(registration_id: UUID) -> Registration:
    """Decline a promotion offer and hand the seat to the next in line.

    Raises:
        RegistrationNotFound: Unknown registration.
        InvalidState: The registration holds no pending offer.
        PromotionExpired: The deadline has passed; expiry is the sweep's job.
    """
    now = timezone.now()
    with transaction.atomic():
        registration = _load_pending_offer(registration_id, now)
        resolve_offer(registration, Registration.CancellationReason.DECLINED, now=now)
    return registration


@retry_on_conflict
def _expire_offer(registration_id: UUID, now: datetime) -> bool:
    with transaction.atomic():
        registration = Registration.objects.filter(pk=registration_id).first()
        if (
            registration is None
            or registration.status != Registration.Status.PROMOTION_PENDING
            or registration.promotion_deadline is None
            or registration.promotion_deadline >= now
        ):
            # Accepted, declined or expired by someone else since the sweep listed it.
            return False
        resolve_offer(registration, Registration.CancellationReason.EXPIRED, now=now)
    return True


def expire_overdue(now: datetime | None = None) -> int:
    """Expire every offer whose deadline has passed and cascade each freed seat.

    Safe to run concurrently and repeatedly. A record that keeps failing is logged and
    left for the next run without holding up the others.

    Returns:
        The number of offers this run expired.
    """
    now = now or timezone.now()
    overdue_ids = list(
        Registration.objects.overdue_promotions(now).values_list("id", flat=True)[
            : settings.REGISTRATION_SWEEP_BATCH_SIZE
        ]
    )
    expired = 0
    for registration_id in overdue_ids:
        try:
            if _expire_offer(registration_id, now):
                expired += 1
        except ConcurrencyConflict:
            logger.warning("promotion_expiry_conflict", registration_id=str(registration_id))
        except (RegistrationError, DatabaseError):
            logger.exception("promotion_expiry_failed", registration_id=str(registration_id))
    if overdue_ids:
        logger.info("promotion_expiry_sweep_finished", candidates=len(overdue_ids), expired=expired)
    return expired


@retry_on_conflict
def _fill_event(event_id: UUID, now: datetime) -> int:
    promoted = 0
    with transaction.atomic():
        while promote_next(event_id, now=now) is not None:
            promoted += 1
    return promoted


def fill_free_seats(now: datetime | None = None) -> int:
    """Offer free seats of events that still have people waiting.

    Promotions normally happen in the transaction that frees the seat; this sweep only
    catches seats that ended up free with a non-empty queue.

    Returns:
        The number of offers created.
    """
    now = now or timezone.now()
    event_ids = list(
        EventCapacity.objects.filter(held_seats__lt=F("capacity"), waitlist_count__gt=0).values_list(
            "event_id", flat=True
        )[: settings.REGISTRATION_SWEEP_BATCH_SIZE]
    )
    promoted = 0
    for event_id in event_ids:
        try:
            promoted += _fill_event(event_id, now)
        except (RegistrationError, DatabaseError):
            logger.exception("fill_free_seats_failed", event_id=str(event_id))
    return promoted
