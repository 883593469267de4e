# events/admin.py
"""
Django admin configuration for event models.

Events and reaction runs are read-only in admin; reconcile through
`manage.py reconcile_reactions` or the API.
"""

from django.contrib import admin
from django.utils.html import format_html
import json

from .models import DomainEvent, ReactionRun


class ReactionRunInline(admin.TabularInline):
    model = ReactionRun
    extra = 0
    can_delete = False
    readonly_fields = ["reaction_name", "status", "attempts", "last_error", "started_at", "finished_at"]
    fields = readonly_fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(DomainEvent)
class DomainEventAdmin(admin.ModelAdmin):
    list_display = ["id_short", "event_type", "aggregate_display", "caused_by_user", "occurred_at"]
    list_filter = ["event_type", "aggregate_type", "occurred_at"]
    search_fields = ["event_type", "aggregate_id", "caused_by_user__email"]
    date_hierarchy = "occurred_at"
    list_select_related = ["caused_by_user"]
    ordering = ["-occurred_at"]
    inlines = [ReactionRunInline]

    readonly_fields = [
        "id", "event_type", "aggregate_type", "aggregate_id",
        "data_formatted", "metadata_formatted", "caused_by_user",
        "occurred_at", "recorded_at",
    ]
    exclude = ["data", "metadata"]

    def id_short(self, obj):
        return str(obj.id)[:8] + "..."
    id_short.short_description = "ID"

    def aggregate_display(self, obj):
        return f"{obj.aggregate_type}#{obj.aggregate_id}"
    aggregate_display.short_description = "Aggregate"

    def data_formatted(self, obj):
        return format_html(
            "<pre style='white-space: pre-wrap; max-width: 600px;'>{}</pre>",
            json.dumps(obj.data, indent=2, default=str),
        )
    data_formatted.short_description = "Data"

    def metadata_formatted(self, obj):
        return format_html(
            "<pre style='white-space: pre-wrap; max-width: 600px;'>{}</pre>",
            json.dumps(obj.metadata, indent=2, default=str),
        )
    metadata_formatted.short_description = "Metadata"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ReactionRun)
class ReactionRunAdmin(admin.ModelAdmin):
    list_display = ["reaction_name", "event", "status", "attempts", "finished_at"]
    list_filter = ["status", "reaction_name"]
    search_fields = ["reaction_name", "last_error"]
    list_select_related = ["event"]
    readonly_fields = [
        "event", "reaction_name", "status", "attempts", "last_error",
        "started_at", "finished_at", "created_at", "updated_at",
    ]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
