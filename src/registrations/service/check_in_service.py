from datetime import datetime
from uuid import UUID

import structlog
from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from common.signing import codes_match, verify_check_in_code
from events.catalog import get_event_catalog
from registrations.exceptions import (
    CheckInMismatch,
    ConcurrencyConflict,
    EventClosed,
    EventNotFound,
    InvalidState,
    RegistrationError,
)
from registrations.models import Registration

from . import publisher
from . import registration_store as store
from .concurrency import retry_on_conflict

logger = structlog.get_logger(__name__)


@retry_on_conflict
def check_in(registration_id: UUID, presented_code: str) -> Registration:
    """Mark a registered attendee as present.

    Raises:
        RegistrationNotFound: Unknown registration.
        InvalidState: Not REGISTERED (waitlisted, cancelled, already checked in...).
        EventClosed: The event's check-in window is not open.
        CheckInMismatch: The presented code is not the one issued for this registration.
    """
    now = timezone.now()
    with transaction.atomic():
        registration = store.get_registration(registration_id)
        if registration.status != Registration.Status.REGISTERED:
            raise InvalidState(f"Cannot check in a registration that is {registration.status}.")

        event = get_event_catalog().get(registration.event_id)
        if event is None:
            raise EventNotFound()
        if not event.is_check_in_open(now):
            raise EventClosed("Check-in is not currently open for this event.")

        if not (
            codes_match(presented_code, registration.qr_code)
            and verify_check_in_code(presented_code, registration.event_id, registration.user_id)
        ):
            logger.warning("check_in_code_mismatch", registration_id=str(registration.id))
            raise CheckInMismatch()

        store.transition(registration, Registration.Status.ATTENDED, attended_at=now)
        publisher.publish(publisher.EventKind.CHECKED_IN, publisher.registration_payload(registration))

    logger.info("attendee_checked_in", registration_id=str(registration.id), event_id=str(registration.event_id))
    return registration


@retry_on_conflict
def _mark_no_show(registration_id: UUID) -> bool:
    with transaction.atomic():
        registration = Registration.objects.filter(pk=registration_id).first()
        if registration is None or registration.status != Registration.Status.REGISTERED:
            return False
        store.transition(registration, Registration.Status.NO_SHOW)
        publisher.publish(publisher.EventKind.NO_SHOW, publisher.registration_payload(registration))
    return True


def _ended_event_ids(now: datetime) -> list[UUID]:
    """Events with REGISTERED attendees whose end, according to the catalog, has passed."""
    catalog = get_event_catalog()
    event_ids = (
        Registration.objects.filter(status=Registration.Status.REGISTERED)
        .order_by()
        .values_list("event_id", flat=True)
        .distinct()
    )
    ended = []
    for event_id in event_ids:
        event = catalog.get(event_id)
        if event is not None and event.has_ended(now):
            ended.append(event_id)
    return ended


def mark_no_shows(now: datetime | None = None) -> int:
    """Move REGISTERED records of events that have ended to NO_SHOW.

    Returns:
        The number of registrations marked.
    """
    now = now or timezone.now()
    candidate_ids = list(
        Registration.objects.filter(
            status=Registration.Status.REGISTERED, event_id__in=_ended_event_ids(now)
        ).values_list("id", flat=True)[: settings.REGISTRATION_SWEEP_BATCH_SIZE]
    )
    marked = 0
    for registration_id in candidate_ids:
        try:
            if _mark_no_show(registration_id):
                marked += 1
        except ConcurrencyConflict:
            logger.warning("no_show_conflict", registration_id=str(registration_id))
        except (RegistrationError, DatabaseError):
            logger.exception("no_show_failed", registration_id=str(registration_id))
    if candidate_ids:
        logger.info("no_show_sweep_finished", candidates=len(candidate_ids), marked=marked)
    return marked
