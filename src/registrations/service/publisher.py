"""Fire-and-forget publication of registration domain events."""

import enum
import typing as t

import structlog
from django.db import transaction

from registrations.models import Registration
from registrations.signals import registration_event

logger = structlog.get_logger(__name__)


class EventKind(enum.StrEnum):
    CREATED = "registration.created"
    WAITLISTED = "registration.waitlisted"
    PROMOTED = "registration.promoted"
    ACCEPTED = "registration.accepted"
    DECLINED = "registration.declined"
    EXPIRED = "registration.expired"
    CANCELLED = "registration.cancelled"
    CHECKED_IN = "registration.checked_in"
    NO_SHOW = "registration.no_show"


def registration_payload(registration: Registration, **extra: t.Any) -> dict[str, t.Any]:
    payload: dict[str, t.Any] = {
        "registration_id": str(registration.id),
        "event_id": str(registration.event_id),
        "user_id": str(registration.user_id),
        "status": registration.status,
        "waitlist_position": registration.waitlist_position,
        "promotion_deadline": (
            registration.promotion_deadline.isoformat() if registration.promotion_deadline else None
        ),
        "cancellation_reason": registration.cancellation_reason,
    }
    payload.update(extra)
    return payload


def publish(kind: EventKind, payload: dict[str, t.Any]) -> None:
    """Emit a domain event once the surrounding transaction commits.

    If the transaction rolls back (for instance after a lost optimistic race) the event is
    dropped together with the transition it described.
    """

    def _send() -> None:
        responses = registration_event.send_robust(sender=Registration, kind=str(kind), payload=payload)
        for receiver, response in responses:
            if isinstance(response, Exception):
                logger.error(
                    "registration_event_receiver_failed",
                    kind=str(kind),
                    receiver=getattr(receiver, "__qualname__", repr(receiver)),
                    registration_id=payload.get("registration_id"),
                    exc_info=response,
                )

    transaction.on_commit(_send)
