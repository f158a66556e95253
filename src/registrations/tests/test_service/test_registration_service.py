import typing as t
import uuid
from datetime import timedelta

import pytest
from django.contrib.auth.models import AbstractUser
from django.utils import timezone
from freezegun import freeze_time

from events.models import Event
from registrations.exceptions import AlreadyRegistered, EventClosed, EventNotFound, InvalidState, PromotionExpired
from registrations.models import EventCapacity, Registration
from registrations.service import capacity_ledger, registration_service, registration_store, waitlist
from registrations.service.publisher import EventKind
from registrations.service.state_machine import SEAT_HOLDING_STATES

pytestmark = pytest.mark.django_db


def assert_ledger_consistent(event: Event) -> None:
    """The ledger counters match the registrations they summarise."""
    ledger = EventCapacity.objects.get(event=event)
    registrations = Registration.objects.for_event(event.id)
    assert ledger.held_seats == registrations.filter(status__in=SEAT_HOLDING_STATES).count()
    assert ledger.waitlist_count == registrations.filter(status=Registration.Status.WAITLISTED).count()
    assert waitlist.positions(event.id) == list(range(1, ledger.waitlist_count + 1))


class TestRegisterForEvent:
    def test_registers_while_seats_are_free(self, event: Event, user: AbstractUser) -> None:
        registration = registration_service.register_for_event(event.id, user)

        assert registration.status == Registration.Status.REGISTERED
        assert registration.waitlist_position is None
        assert registration.qr_code.startswith(f"{registration.id}.")
        assert registration.version == 1
        assert capacity_ledger.snapshot(event.id).held_seats == 1

    def test_waitlists_when_full(self, single_seat_event: Event, user: AbstractUser, other_user: AbstractUser) -> None:
        registration_service.register_for_event(single_seat_event.id, user)

        registration = registration_service.register_for_event(single_seat_event.id, other_user)

        assert registration.status == Registration.Status.WAITLISTED
        assert registration.waitlist_position == 1
        assert_ledger_consistent(single_seat_event)

    def test_scenario_a_joins_end_of_waitlist(self, full_event: t.Any, user_factory: t.Any) -> None:
        """capacity=3 and full, U4@1 U5@2 waiting: U6 gets position 3."""
        registration = registration_service.register_for_event(full_event.event.id, user_factory(username="u6"))

        assert registration.status == Registration.Status.WAITLISTED
        assert registration.waitlist_position == 3
        snapshot = capacity_ledger.snapshot(full_event.event.id)
        assert snapshot.held_seats == 3
        assert snapshot.waitlist_count == 3
        assert_ledger_consistent(full_event.event)

    def test_free_seat_goes_to_waitlist_head_not_newcomer(self, full_event: t.Any, user_factory: t.Any) -> None:
        # A seat freed without its cascade running, as `fill_free_seats` would find it.
        registration_store.transition(
            full_event.registered[0],
            Registration.Status.CANCELLED,
            cancelled_at=timezone.now(),
            cancellation_reason=Registration.CancellationReason.USER,
        )
        capacity_ledger.release(full_event.event.id)

        registration = registration_service.register_for_event(full_event.event.id, user_factory(username="u6"))

        assert registration.status == Registration.Status.WAITLISTED
        u4, u5 = full_event.waitlisted
        u4.refresh_from_db()
        u5.refresh_from_db()
        registration.refresh_from_db()
        assert u4.status == Registration.Status.PROMOTION_PENDING
        assert (u5.waitlist_position, registration.waitlist_position) == (1, 2)
        snapshot = capacity_ledger.snapshot(full_event.event.id)
        assert (snapshot.held_seats, snapshot.waitlist_count) == (3, 2)
        assert_ledger_consistent(full_event.event)

    def test_publishes_created_and_waitlisted(
        self,
        single_seat_event: Event,
        user: AbstractUser,
        other_user: AbstractUser,
        published: list[tuple[str, dict[str, t.Any]]],
        django_capture_on_commit_callbacks: t.Any,
    ) -> None:
        with django_capture_on_commit_callbacks(execute=True):
            first = registration_service.register_for_event(single_seat_event.id, user)
            registration_service.register_for_event(single_seat_event.id, other_user)

        assert [kind for kind, _ in published] == [EventKind.CREATED, EventKind.WAITLISTED]
        assert published[0][1]["registration_id"] == str(first.id)
        assert published[1][1]["waitlist_position"] == 1

    def test_already_registered(self, event: Event, user: AbstractUser) -> None:
        registration_service.register_for_event(event.id, user)

        with pytest.raises(AlreadyRegistered):
            registration_service.register_for_event(event.id, user)

        assert Registration.objects.filter(event=event, user=user).count() == 1
        assert capacity_ledger.snapshot(event.id).held_seats == 1

    def test_already_waitlisted(self, single_seat_event: Event, user: AbstractUser, other_user: AbstractUser) -> None:
        registration_service.register_for_event(single_seat_event.id, user)
        registration_service.register_for_event(single_seat_event.id, other_user)

        with pytest.raises(AlreadyRegistered):
            registration_service.register_for_event(single_seat_event.id, other_user)

        assert capacity_ledger.snapshot(single_seat_event.id).waitlist_count == 1

    def test_can_register_again_after_cancelling(self, event: Event, user: AbstractUser) -> None:
        first = registration_service.register_for_event(event.id, user)
        registration_service.cancel_registration(first.id)

        second = registration_service.register_for_event(event.id, user)

        assert second.id != first.id
        assert second.status == Registration.Status.REGISTERED

    def test_unknown_event(self, user: AbstractUser) -> None:
        with pytest.raises(EventNotFound):
            registration_service.register_for_event(uuid.uuid4(), user)

    @pytest.mark.parametrize(
        "status", [Event.EventStatus.DRAFT, Event.EventStatus.CLOSED, Event.EventStatus.CANCELLED]
    )
    def test_event_not_open(self, event_factory: t.Any, user: AbstractUser, status: str) -> None:
        event = event_factory(status=status)

        with pytest.raises(EventClosed):
            registration_service.register_for_event(event.id, user)

        assert not Registration.objects.filter(event=event).exists()

    def test_event_already_started(self, event: Event, user: AbstractUser) -> None:
        with freeze_time(event.start + timedelta(minutes=1)):
            with pytest.raises(EventClosed):
                registration_service.register_for_event(event.id, user)


class TestIdempotency:
    def test_same_key_returns_same_registration(self, event: Event, user: AbstractUser) -> None:
        first = registration_service.register_for_event(event.id, user, idempotency_key="req-1")
        again = registration_service.register_for_event(event.id, user, idempotency_key="req-1")

        assert again.id == first.id
        assert Registration.objects.filter(event=event).count() == 1
        assert capacity_ledger.snapshot(event.id).held_seats == 1

    def test_replay_returns_current_state(self, event: Event, user: AbstractUser) -> None:
        """A key keeps pointing at its registration even after it was cancelled."""
        first = registration_service.register_for_event(event.id, user, idempotency_key="req-1")
        registration_service.cancel_registration(first.id)

        again = registration_service.register_for_event(event.id, user, idempotency_key="req-1")

        assert again.id == first.id
        assert again.status == Registration.Status.CANCELLED

    def test_replay_does_not_publish(
        self,
        event: Event,
        user: AbstractUser,
        published: list[tuple[str, dict[str, t.Any]]],
        django_capture_on_commit_callbacks: t.Any,
    ) -> None:
        with django_capture_on_commit_callbacks(execute=True):
            registration_service.register_for_event(event.id, user, idempotency_key="req-1")
            registration_service.register_for_event(event.id, user, idempotency_key="req-1")

        assert [kind for kind, _ in published] == [EventKind.CREATED]

    def test_keys_are_scoped_per_user(self, event: Event, user: AbstractUser, other_user: AbstractUser) -> None:
        mine = registration_service.register_for_event(event.id, user, idempotency_key="same")
        theirs = registration_service.register_for_event(event.id, other_user, idempotency_key="same")

        assert mine.id != theirs.id

    def test_new_key_for_live_registration(self, event: Event, user: AbstractUser) -> None:
        registration_service.register_for_event(event.id, user, idempotency_key="req-1")

        with pytest.raises(AlreadyRegistered):
            registration_service.register_for_event(event.id, user, idempotency_key="req-2")


class TestCancelRegistration:
    def test_scenario_b_cancel_cascades_to_waitlist_head(
        self,
        full_event: t.Any,
        published: list[tuple[str, dict[str, t.Any]]],
        django_capture_on_commit_callbacks: t.Any,
    ) -> None:
        u4, u5 = full_event.waitlisted

        with django_capture_on_commit_callbacks(execute=True):
            cancelled = registration_service.cancel_registration(full_event.registered[0].id)

        assert cancelled.status == Registration.Status.CANCELLED
        assert cancelled.cancellation_reason == Registration.CancellationReason.USER
        u4.refresh_from_db()
        u5.refresh_from_db()
        assert u4.status == Registration.Status.PROMOTION_PENDING
        assert u4.waitlist_position is None
        assert u4.promotion_deadline is not None
        assert u5.status == Registration.Status.WAITLISTED
        assert u5.waitlist_position == 1

        snapshot = capacity_ledger.snapshot(full_event.event.id)
        assert snapshot.held_seats == 3
        assert snapshot.waitlist_count == 1
        assert_ledger_consistent(full_event.event)
        assert [kind for kind, _ in published] == [EventKind.CANCELLED, EventKind.PROMOTED]

    def test_cancel_without_waitlist_frees_seat(self, event: Event, user: AbstractUser) -> None:
        registration = registration_service.register_for_event(event.id, user)

        registration_service.cancel_registration(registration.id)

        assert capacity_ledger.snapshot(event.id).held_seats == 0
        assert_ledger_consistent(event)

    def test_cancel_waitlisted_compacts_queue(self, full_event: t.Any, user_factory: t.Any) -> None:
        u6 = registration_service.register_for_event(full_event.event.id, user_factory(username="u6"))
        u4, u5 = full_event.waitlisted

        registration_service.cancel_registration(u4.id)

        u5.refresh_from_db()
        u6.refresh_from_db()
        assert (u5.waitlist_position, u6.waitlist_position) == (1, 2)
        snapshot = capacity_ledger.snapshot(full_event.event.id)
        assert snapshot.held_seats == 3
        assert snapshot.waitlist_count == 2
        assert_ledger_consistent(full_event.event)

    def test_cancel_pending_offer_declines_it(self, full_event: t.Any) -> None:
        registration_service.cancel_registration(full_event.registered[0].id)
        u4, u5 = full_event.waitlisted

        registration_service.cancel_registration(u4.id)

        u4.refresh_from_db()
        u5.refresh_from_db()
        assert u4.status == Registration.Status.CANCELLED
        assert u4.cancellation_reason == Registration.CancellationReason.DECLINED
        assert u5.status == Registration.Status.PROMOTION_PENDING
        assert_ledger_consistent(full_event.event)

    def test_cancel_pending_offer_after_deadline(self, full_event: t.Any) -> None:
        registration_service.cancel_registration(full_event.registered[0].id)
        u4 = full_event.waitlisted[0]
        u4.refresh_from_db()
        assert u4.promotion_deadline is not None

        with freeze_time(u4.promotion_deadline + timedelta(seconds=1)):
            with pytest.raises(PromotionExpired):
                registration_service.cancel_registration(u4.id)

    def test_cancel_twice(self, event: Event, user: AbstractUser) -> None:
        registration = registration_service.register_for_event(event.id, user)
        registration_service.cancel_registration(registration.id)

        with pytest.raises(InvalidState):
            registration_service.cancel_registration(registration.id)

        assert capacity_ledger.snapshot(event.id).held_seats == 0

    def test_cancel_after_event_ended(self, event: Event, user: AbstractUser) -> None:
        registration = registration_service.register_for_event(event.id, user)

        with freeze_time(event.end + timedelta(minutes=1)):
            with pytest.raises(EventClosed):
                registration_service.cancel_registration(registration.id)

        registration.refresh_from_db()
        assert registration.status == Registration.Status.REGISTERED


class TestReads:
    def test_get_user_registration_ignores_cancelled(self, event: Event, user: AbstractUser) -> None:
        registration = registration_service.register_for_event(event.id, user)
        assert registration_service.get_user_registration(event.id, user) == registration

        registration_service.cancel_registration(registration.id)

        assert registration_service.get_user_registration(event.id, user) is None

    def test_list_user_registrations_filters_by_status(
        self, event: Event, event_factory: t.Any, user: AbstractUser
    ) -> None:
        kept = registration_service.register_for_event(event.id, user)
        dropped = registration_service.register_for_event(event_factory().id, user)
        registration_service.cancel_registration(dropped.id)

        assert set(registration_service.list_user_registrations(user)) == {kept, dropped}
        assert list(registration_service.list_user_registrations(user, status=Registration.Status.CANCELLED)) == [
            dropped
        ]

    def test_list_waitlist_in_order(self, full_event: t.Any) -> None:
        entries = list(registration_service.list_waitlist(full_event.event.id))
        assert [e.id for e in entries] == [r.id for r in full_event.waitlisted]

    def test_list_waitlist_unknown_event(self) -> None:
        with pytest.raises(EventNotFound):
            registration_service.list_waitlist(uuid.uuid4())

    def test_get_event_capacity(self, full_event: t.Any) -> None:
        snapshot = registration_service.get_event_capacity(full_event.event.id)
        assert (snapshot.capacity, snapshot.held_seats, snapshot.waitlist_count) == (3, 3, 2)
