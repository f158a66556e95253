from uuid import UUID

from django.db.models import QuerySet
from ninja import Header
from ninja_extra import api_controller, route
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate
from ninja_extra.permissions import IsAdminUser
from ninja_jwt.authentication import JWTAuth

from common.controllers import UserAwareController
from common.schema import ErrorResponse
from common.throttling import CheckInThrottle, RegistrationWriteThrottle
from registrations import schema
from registrations.exceptions import RegistrationNotFound
from registrations.models import Registration
from registrations.service import registration_service

ERROR_RESPONSES = {400: ErrorResponse, 404: ErrorResponse, 409: ErrorResponse, 410: ErrorResponse}


@api_controller("/events", auth=JWTAuth(), tags=["Registrations"])
class EventRegistrationController(UserAwareController):
    @route.post(
        "/{event_id}/registrations",
        url_name="register_for_event",
        response={201: schema.RegistrationSchema, **ERROR_RESPONSES},
        throttle=RegistrationWriteThrottle(),
    )
    def register(
        self,
        event_id: UUID,
        idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    ) -> tuple[int, Registration]:
        """Register for an event, or join its waitlist when it is full.

        The response status tells the two apart: REGISTERED holds a seat, WAITLISTED carries a
        `waitlist_position`. Send an `Idempotency-Key` header to make retries safe: repeating a
        request with the same key returns the original registration instead of creating another.
        """
        registration = registration_service.register_for_event(event_id, self.user(), idempotency_key=idempotency_key)
        return 201, registration

    @route.get(
        "/{event_id}/capacity",
        url_name="event_capacity",
        response={200: schema.CapacitySchema, 404: ErrorResponse},
    )
    def capacity(self, event_id: UUID) -> schema.CapacitySchema:
        """Seat accounting for an event. Seats held for pending promotion offers count as taken."""
        return schema.CapacitySchema(**registration_service.get_event_capacity(event_id).as_dict())

    @route.get(
        "/{event_id}/registrations/me",
        url_name="my_event_registration",
        response={200: schema.RegistrationSchema, 404: ErrorResponse},
    )
    def my_registration(self, event_id: UUID) -> Registration:
        """The caller's live registration for this event."""
        registration = registration_service.get_user_registration(event_id, self.user())
        if registration is None:
            raise RegistrationNotFound()
        return registration

    @route.get(
        "/{event_id}/waitlist",
        url_name="event_waitlist",
        response=PaginatedResponseSchema[schema.WaitlistEntrySchema],
        permissions=[IsAdminUser],
    )
    @paginate(PageNumberPaginationExtra, page_size=50)
    def waitlist(self, event_id: UUID) -> QuerySet[Registration]:
        """The waitlist of an event in promotion order. Staff only."""
        return registration_service.list_waitlist(event_id)


@api_controller("/registrations", auth=JWTAuth(), tags=["Registrations"])
class RegistrationController(UserAwareController):
    def get_own(self, registration_id: UUID) -> Registration:
        """Load a registration the caller owns; other people's registrations are reported as missing."""
        registration = registration_service.get_registration(registration_id)
        if registration.user_id != self.user().pk and not self.user().is_staff:
            raise RegistrationNotFound()
        return registration

    @route.get("/", url_name="list_my_registrations", response=PaginatedResponseSchema[schema.RegistrationSchema])
    @paginate(PageNumberPaginationExtra, page_size=20)
    def list_registrations(self, status: Registration.Status | None = None) -> QuerySet[Registration]:
        """The caller's registrations across all events, newest first, optionally filtered by status."""
        return registration_service.list_user_registrations(self.user(), status=status)

    @route.get(
        "/{registration_id}",
        url_name="get_registration",
        response={200: schema.RegistrationSchema, 404: ErrorResponse},
    )
    def get_registration(self, registration_id: UUID) -> Registration:
        return self.get_own(registration_id)

    @route.post(
        "/{registration_id}/cancel",
        url_name="cancel_registration",
        response={200: schema.RegistrationSchema, **ERROR_RESPONSES},
        throttle=RegistrationWriteThrottle(),
    )
    def cancel(self, registration_id: UUID) -> Registration:
        """Cancel a registration.

        A freed seat is offered to the head of the waitlist right away. Cancelling while holding
        a promotion offer declines it.
        """
        self.get_own(registration_id)
        return registration_service.cancel_registration(registration_id)

    @route.post(
        "/{registration_id}/accept",
        url_name="accept_promotion",
        response={200: schema.RegistrationSchema, **ERROR_RESPONSES},
        throttle=RegistrationWriteThrottle(),
    )
    def accept(self, registration_id: UUID) -> Registration:
        """Accept a promotion offer before its `promotion_deadline`. Returns 410 once it has passed."""
        self.get_own(registration_id)
        return registration_service.accept_promotion(registration_id)

    @route.post(
        "/{registration_id}/decline",
        url_name="decline_promotion",
        response={200: schema.RegistrationSchema, **ERROR_RESPONSES},
        throttle=RegistrationWriteThrottle(),
    )
    def decline(self, registration_id: UUID) -> Registration:
        """Decline a promotion offer; the seat goes to the next person on the waitlist."""
        self.get_own(registration_id)
        return registration_service.decline_promotion(registration_id)

    @route.post(
        "/{registration_id}/check-in",
        url_name="check_in_registration",
        response={200: schema.RegistrationSchema, **ERROR_RESPONSES},
        permissions=[IsAdminUser],
        throttle=CheckInThrottle(),
    )
    def check_in(self, registration_id: UUID, payload: schema.CheckInSchema) -> Registration:
        """Check an attendee in by the code from their ticket. Staff only."""
        return registration_service.check_in_attendee(registration_id, payload.code)
