import typing as t

from django.contrib import admin
from django.urls import reverse
from django.utils.html import format_html

from . import models


class EventLinkMixin:
    """Mixin to add a link to the registration's event."""

    def event_link(self, obj: t.Any) -> str:
        url = reverse("admin:events_event_change", args=[obj.event_id])
        return format_html('<a href="{}">{}</a>', url, obj.event)

    event_link.short_description = "Event"  # type: ignore[attr-defined]


@admin.register(models.Registration)
class RegistrationAdmin(EventLinkMixin, admin.ModelAdmin):  # type: ignore[type-arg]
    """Read-only view: every change must go through the engine to keep the ledger consistent."""

    list_display = ["user", "event_link", "status", "waitlist_position", "promotion_deadline", "registered_at"]
    list_filter = ["status", "cancellation_reason"]
    search_fields = ["user__username", "user__email", "event__name"]
    list_select_related = ["user", "event"]
    readonly_fields = [field.name for field in models.Registration._meta.fields]

    def has_add_permission(self, request: t.Any) -> bool:
        return False

    def has_change_permission(self, request: t.Any, obj: t.Any = None) -> bool:
        return False


@admin.register(models.EventCapacity)
class EventCapacityAdmin(EventLinkMixin, admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["event_link", "capacity", "held_seats", "waitlist_count", "version"]
    list_select_related = ["event"]
    readonly_fields = [field.name for field in models.EventCapacity._meta.fields]

    def has_add_permission(self, request: t.Any) -> bool:
        return False

    def has_change_permission(self, request: t.Any, obj: t.Any = None) -> bool:
        return False
