"""Entry points of the registration engine.

Callers (the HTTP controllers, management tooling) go through these functions only.
Each mutating operation owns its transaction and is retried on optimistic-concurrency
conflicts; everything else surfaces as a named RegistrationError.
"""

from uuid import UUID

import structlog
from django.contrib.auth.models import AbstractBaseUser
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from common.observability import get_tracer
from events.catalog import get_event_catalog
from registrations.exceptions import AlreadyRegistered, EventClosed, EventNotFound, InvalidState, PromotionExpired
from registrations.models import Registration, RegistrationQuerySet

from . import capacity_ledger, check_in_service, idempotency, promotion_service, publisher, waitlist
from . import registration_store as store
from .capacity_ledger import CapacitySnapshot
from .concurrency import retry_on_conflict

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)


@retry_on_conflict
def register_for_event(event_id: UUID, user: AbstractBaseUser, idempotency_key: str | None = None) -> Registration:
    """Register a user for an event, or put them on its waitlist when it is full.

    Repeating a request with the same idempotency key returns the registration the first
    request created, untouched, whatever state it has reached since.

    Raises:
        EventNotFound: Unknown event.
        EventClosed: The event is not open or has already started.
        AlreadyRegistered: The user holds a live registration for the event.
    """
    existing = idempotency.find_existing(event_id, user, idempotency_key)
    if existing is not None:
        logger.info("registration_request_deduplicated", registration_id=str(existing.id))
        return existing

    now = timezone.now()
    event = get_event_catalog().get(event_id)
    if event is None:
        raise EventNotFound()
    if not event.accepts_registrations(now):
        raise EventClosed("This event is not accepting registrations.")
    if Registration.objects.for_event(event_id).live().filter(user=user).exists():
        raise AlreadyRegistered()

    with tracer.start_as_current_span("registrations.register") as span:
        span.set_attribute("event_id", str(event_id))
        try:
            with transaction.atomic():
                reservation = capacity_ledger.reserve(event_id)
                registration = store.create_registration(
                    event_id=event_id,
                    user=user,
                    status=(
                        Registration.Status.REGISTERED if reservation.is_reserved else Registration.Status.WAITLISTED
                    ),
                    waitlist_position=reservation.waitlist_position,
                    idempotency_key=idempotency_key,
                    now=now,
                )
                kind = publisher.EventKind.CREATED if reservation.is_reserved else publisher.EventKind.WAITLISTED
                publisher.publish(kind, publisher.registration_payload(registration))
                if not reservation.is_reserved:
                    # A seat left free behind a non-empty queue goes to the head, not to the newcomer.
                    promotion_service.promote_next(event_id, now=now)
        except (IntegrityError, ValidationError):
            # A concurrent request for the same user won the insert; the ledger change rolled back with ours.
            existing = idempotency.find_existing(event_id, user, idempotency_key)
            if existing is not None:
                return existing
            raise AlreadyRegistered()

    logger.info(
        "registration_created",
        registration_id=str(registration.id),
        event_id=str(event_id),
        status=registration.status,
        waitlist_position=registration.waitlist_position,
    )
    return registration


@retry_on_conflict
def cancel_registration(registration_id: UUID) -> Registration:
    """Cancel a registration on the user's behalf.

    Cancelling a seat frees it and offers it to the head of the waitlist in the same
    transaction. Cancelling a waitlisted entry closes its gap in the queue. A pending
    promotion offer is declined.

    Raises:
        RegistrationNotFound: Unknown registration.
        InvalidState: Already cancelled, attended or marked no-show.
        EventClosed: The event has already ended.
        PromotionExpired: The registration held an offer whose deadline has passed.
    """
    now = timezone.now()
    with tracer.start_as_current_span("registrations.cancel"), transaction.atomic():
        registration = store.get_registration(registration_id)
        event = get_event_catalog().get(registration.event_id)
        if event is not None and event.has_ended(now):
            raise EventClosed("Cannot cancel a registration for an event that has ended.")

        match registration.status:
            case Registration.Status.WAITLISTED:
                ledger = capacity_ledger.get_ledger(registration.event_id)
                position = registration.waitlist_position
                store.transition(
                    registration,
                    Registration.Status.CANCELLED,
                    cancelled_at=now,
                    cancellation_reason=Registration.CancellationReason.USER,
                )
                if position is not None:
                    waitlist.compact(registration.event_id, position)
                capacity_ledger.leave_waitlist(ledger)
                publisher.publish(publisher.EventKind.CANCELLED, publisher.registration_payload(registration))

            case Registration.Status.REGISTERED:
                store.transition(
                    registration,
                    Registration.Status.CANCELLED,
                    cancelled_at=now,
                    cancellation_reason=Registration.CancellationReason.USER,
                )
                publisher.publish(publisher.EventKind.CANCELLED, publisher.registration_payload(registration))
                if capacity_ledger.release(registration.event_id):
                    promotion_service.promote_next(registration.event_id, now=now)

            case Registration.Status.PROMOTION_PENDING:
                if registration.promotion_deadline is None or now > registration.promotion_deadline:
                    raise PromotionExpired()
                promotion_service.resolve_offer(registration, Registration.CancellationReason.DECLINED, now=now)

            case _:
                raise InvalidState(f"Cannot cancel a registration that is {registration.status}.")

    logger.info("registration_cancelled", registration_id=str(registration.id), event_id=str(registration.event_id))
    return registration


def accept_promotion(registration_id: UUID) -> Registration:
    return promotion_service.accept(registration_id)


def decline_promotion(registration_id: UUID) -> Registration:
    return promotion_service.decline(registration_id)


def check_in_attendee(registration_id: UUID, code: str) -> Registration:
    return check_in_service.check_in(registration_id, code)


def get_event_capacity(event_id: UUID) -> CapacitySnapshot:
    """Current seat accounting for an event.

    Seats held for pending promotion offers count as occupied.
    """
    return capacity_ledger.snapshot(event_id)


def get_registration(registration_id: UUID) -> Registration:
    return store.get_registration(registration_id)


def get_user_registration(event_id: UUID, user: AbstractBaseUser) -> Registration | None:
    """The user's live registration for the event, if they have one."""
    return Registration.objects.for_event(event_id).live().filter(user=user).first()


def list_user_registrations(user: AbstractBaseUser, status: str | None = None) -> RegistrationQuerySet:
    qs = Registration.objects.filter(user=user).with_event().order_by("-registered_at")
    if status:
        qs = qs.filter(status=status)
    return qs


def list_waitlist(event_id: UUID) -> RegistrationQuerySet:
    """WAITLISTED registrations of an event in promotion order."""
    if get_event_catalog().get(event_id) is None:
        raise EventNotFound()
    return waitlist.entries(event_id).select_related("user")
