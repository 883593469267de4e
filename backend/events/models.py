# events/models.py
"""
Event log models.

DomainEvent records every successful aggregate mutation. Rows are
immutable once written.

ReactionRun tracks one reaction's handling of one event. An event is
fully reconciled when every reaction registered for its type has a
SUCCEEDED run; anything else is "committed but under-provisioned" and is
picked up by events.reconciliation.
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class DomainEvent(models.Model):
    """
    Immutable event record.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Event type name (e.g., 'company.created')",
    )

    aggregate_type = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Entity type (e.g., 'Company', 'User')",
    )

    aggregate_id = models.CharField(
        max_length=64,
        db_index=True,
    )

    data = models.JSONField(default=dict)

    metadata = models.JSONField(default=dict, blank=True)

    caused_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="caused_events",
    )

    occurred_at = models.DateTimeField(default=timezone.now, db_index=True)
    recorded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["recorded_at", "id"]
        indexes = [
            models.Index(fields=["aggregate_type", "aggregate_id"], name="event_aggregate_idx"),
        ]

    def __str__(self):
        return f"{self.event_type} [{self.aggregate_type}#{self.aggregate_id}] @{self.occurred_at}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Events are immutable and cannot be modified.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Events are immutable and cannot be deleted.")


class ReactionRun(models.Model):
    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        SUCCEEDED = "SUCCEEDED", "Succeeded"
        FAILED = "FAILED", "Failed"

    event = models.ForeignKey(
        DomainEvent,
        on_delete=models.PROTECT,
        related_name="reaction_runs",
    )

    reaction_name = models.CharField(
        max_length=100,
        help_text="Registered reaction name (e.g., 'provision_company_admin')",
    )

    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )

    attempts = models.PositiveIntegerField(default=0)

    last_error = models.TextField(
        blank=True,
        default="",
        help_text="Last error message",
    )

    started_at = models.DateTimeField(null=True, blank=True)
    finished_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["event", "reaction_name"],
                name="uniq_reaction_run_event_reaction",
            ),
        ]

    def __str__(self):
        return f"{self.reaction_name} <- {self.event_id} ({self.status})"

    def mark_started(self):
        self.attempts += 1
        self.started_at = timezone.now()
        self.save(update_fields=["attempts", "started_at", "updated_at"])

    def mark_succeeded(self):
        self.status = self.Status.SUCCEEDED
        self.finished_at = timezone.now()
        self.last_error = ""
        self.save(update_fields=["status", "finished_at", "last_error", "updated_at"])

    def mark_failed(self, error_message: str):
        self.status = self.Status.FAILED
        self.finished_at = timezone.now()
        self.last_error = error_message[:1000]
        self.save(update_fields=["status", "finished_at", "last_error", "updated_at"])
