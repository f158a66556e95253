"""Persistence of registration records and their lifecycle transitions."""

import typing as t
import uuid
from datetime import datetime
from uuid import UUID

from django.contrib.auth.models import AbstractBaseUser

from common.signing import generate_check_in_code
from registrations.exceptions import RegistrationNotFound
from registrations.models import Registration

from . import state_machine
from .concurrency import conditional_update


def get_registration(registration_id: UUID) -> Registration:
    """Fetch a registration by id.

    Raises:
        RegistrationNotFound: No such registration.
    """
    registration = Registration.objects.filter(pk=registration_id).first()
    if registration is None:
        raise RegistrationNotFound()
    return registration


def create_registration(
    *,
    event_id: UUID,
    user: AbstractBaseUser,
    status: str,
    now: datetime,
    waitlist_position: int | None = None,
    idempotency_key: str | None = None,
) -> Registration:
    """Insert a new registration in its initial state.

    The check-in code is generated here, once, and never changes afterwards.
    """
    if status not in state_machine.INITIAL_STATES:
        raise ValueError(f"Registrations cannot be created as {status}.")
    registration_id = uuid.uuid4()
    return Registration.objects.create(
        id=registration_id,
        event_id=event_id,
        user=user,
        status=status,
        waitlist_position=waitlist_position if status == Registration.Status.WAITLISTED else None,
        qr_code=generate_check_in_code(registration_id, event_id, user.pk),
        registered_at=now,
        idempotency_key=idempotency_key,
    )


def transition(registration: Registration, to_status: str, **fields: t.Any) -> Registration:
    """Move a registration to `to_status` with a version-guarded update.

    Fields that only make sense in one state are cleared when leaving it.

    Raises:
        InvalidState: The lifecycle does not allow the move.
        ConcurrencyConflict: The record changed since it was read.
    """
    state_machine.assert_transition(registration.status, to_status)
    if to_status != Registration.Status.WAITLISTED:
        fields.setdefault("waitlist_position", None)
    if to_status != Registration.Status.PROMOTION_PENDING:
        fields.setdefault("promotion_deadline", None)
    return conditional_update(registration, status=to_status, **fields)
