"""
Shared fixtures for the registration engine tests.
"""

import secrets
import string
import typing as t
from datetime import datetime, time, timedelta

import faker
import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AbstractUser
from django.core.cache import cache
from django.test.client import Client
from django.utils import timezone
from ninja_jwt.tokens import RefreshToken

from events.models import Event
from registrations.signals import registration_event


@pytest.fixture(autouse=True)
def enable_celery_eager_mode(settings: t.Any) -> None:
    """Enable Celery eager mode for tests so tasks execute synchronously."""
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True


@pytest.fixture(autouse=True)
def no_retry_backoff(settings: t.Any) -> None:
    """Retry lost optimistic races immediately instead of sleeping."""
    settings.REGISTRATION_RETRY_BASE_DELAY = 0


@pytest.fixture(autouse=True)
def clear_cache() -> None:
    """Throttle counters live in the cache; start each test with a clean slate."""
    cache.clear()


class UserFactory:
    """Factory for creating users for testing."""

    fake = faker.Faker()

    def create_user(self, **kwargs: t.Any) -> AbstractUser:
        username = kwargs.pop("username", "".join(secrets.choice(string.ascii_lowercase) for _ in range(10)))
        email = kwargs.pop("email", f"{username}@user.test")
        password = kwargs.pop("password", "password")
        first_name = kwargs.pop("first_name", self.fake.first_name())
        last_name = kwargs.pop("last_name", self.fake.last_name())
        return t.cast(
            AbstractUser,
            get_user_model().objects.create_user(
                username=username,
                email=email,
                password=password,
                first_name=first_name,
                last_name=last_name,
                **kwargs,
            ),
        )

    def __call__(self, **kwargs: t.Any) -> AbstractUser:
        return self.create_user(**kwargs)


@pytest.fixture
def user_factory() -> UserFactory:
    return UserFactory()


@pytest.fixture
def user(user_factory: UserFactory) -> AbstractUser:
    return user_factory(username="alice")


@pytest.fixture
def other_user(user_factory: UserFactory) -> AbstractUser:
    return user_factory(username="bob")


@pytest.fixture
def staff_user(user_factory: UserFactory) -> AbstractUser:
    return user_factory(username="door-staff", is_staff=True)


@pytest.fixture
def next_week() -> datetime:
    today = timezone.now()
    same_time_next_week = today + timedelta(days=7)
    noon = time(hour=12, minute=0)
    return timezone.make_aware(
        datetime.combine(same_time_next_week.date(), noon),
        timezone.get_current_timezone(),
    )


class EventFactory:
    """Factory for open catalog events starting next week."""

    def __init__(self, start: datetime) -> None:
        self.start = start

    def __call__(self, **kwargs: t.Any) -> Event:
        kwargs.setdefault("name", f"Event {secrets.token_hex(3)}")
        kwargs.setdefault("status", Event.EventStatus.OPEN)
        kwargs.setdefault("capacity", 2)
        kwargs.setdefault("start", self.start)
        kwargs.setdefault("end", kwargs["start"] + timedelta(hours=4))
        return Event.objects.create(**kwargs)


@pytest.fixture
def event_factory(next_week: datetime) -> EventFactory:
    return EventFactory(next_week)


@pytest.fixture
def event(event_factory: EventFactory) -> Event:
    """An open event with two seats, starting next week."""
    return event_factory(name="Community Meetup", capacity=2)


@pytest.fixture
def single_seat_event(event_factory: EventFactory) -> Event:
    return event_factory(name="Tiny Workshop", capacity=1)


@pytest.fixture
def published() -> t.Iterator[list[tuple[str, dict[str, t.Any]]]]:
    """Collect domain events as (kind, payload) once their transaction commits.

    Under the `db` fixture commits never happen: wrap the action under test in
    `django_capture_on_commit_callbacks(execute=True)` to deliver them.
    """
    received: list[tuple[str, dict[str, t.Any]]] = []

    def _collect(sender: t.Any, kind: str, payload: dict[str, t.Any], **kwargs: t.Any) -> None:
        received.append((kind, payload))

    registration_event.connect(_collect, weak=False, dispatch_uid="test-published-collector")
    yield received
    registration_event.disconnect(dispatch_uid="test-published-collector")


def auth_client(user: AbstractUser) -> Client:
    refresh = RefreshToken.for_user(user)
    return Client(HTTP_AUTHORIZATION=f"Bearer {str(refresh.access_token)}")  # type: ignore[attr-defined]


@pytest.fixture
def user_client(user: AbstractUser) -> Client:
    """API client for a regular user."""
    return auth_client(user)


@pytest.fixture
def other_user_client(other_user: AbstractUser) -> Client:
    return auth_client(other_user)


@pytest.fixture
def staff_client(staff_user: AbstractUser) -> Client:
    """API client for door staff."""
    return auth_client(staff_user)


@pytest.fixture
def client_factory() -> t.Callable[[AbstractUser], Client]:
    """Build API clients on demand, e.g. inside `freeze_time` so the token is not already expired."""
    return auth_client
