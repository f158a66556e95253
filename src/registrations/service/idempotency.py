"""Dedupe of registration-creation requests by caller-supplied key."""

from uuid import UUID

from django.contrib.auth.models import AbstractBaseUser

from registrations.models import Registration


def find_existing(event_id: UUID, user: AbstractBaseUser, idempotency_key: str | None) -> Registration | None:
    """Return the registration a previous request with this key produced, if any.

    Keys live as long as the registration they guard, whatever state it is in now.
    Without a key no dedupe is attempted.
    """
    if not idempotency_key:
        return None
    return Registration.objects.filter(event_id=event_id, user=user, idempotency_key=idempotency_key).first()
