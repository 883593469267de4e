# events/serializers.py
"""
Serializers for the event log and reaction reconciliation API.
"""

from rest_framework import serializers

from events.models import DomainEvent, ReactionRun


class ReactionRunSerializer(serializers.ModelSerializer):
    event_id = serializers.UUIDField(source="event.id", read_only=True)
    event_type = serializers.CharField(source="event.event_type", read_only=True)

    class Meta:
        model = ReactionRun
        fields = [
            "id",
            "event_id",
            "event_type",
            "reaction_name",
            "status",
            "attempts",
            "last_error",
            "started_at",
            "finished_at",
        ]


class DomainEventSerializer(serializers.ModelSerializer):
    caused_by_user_email = serializers.CharField(
        source="caused_by_user.email",
        read_only=True,
        default=None,
    )
    reaction_runs = ReactionRunSerializer(many=True, read_only=True)

    class Meta:
        model = DomainEvent
        fields = [
            "id",
            "event_type",
            "aggregate_type",
            "aggregate_id",
            "data",
            "metadata",
            "caused_by_user_email",
            "occurred_at",
            "recorded_at",
            "reaction_runs",
        ]
