from django.contrib import admin

from . import models


@admin.register(models.Event)
class EventAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["name", "status", "capacity", "start", "end"]
    list_filter = ["status"]
    search_fields = ["name"]
    date_hierarchy = "start"
    ordering = ["-start"]
