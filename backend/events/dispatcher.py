# events/dispatcher.py
"""
Event emission and reaction dispatch.

Aggregate services call emit() once run_transaction() has returned, i.e.
after their writes are committed. emit() validates the payload, records a
DomainEvent and hands it to the reactions registered for its type.

Dispatch mode:
- settings.REACTIONS_SYNC: reactions run inline, right after the event
  is recorded (tests, local development).
- otherwise: a Celery task is enqueued on commit and the request returns
  without waiting for reactions.

Isolation:
Each reaction runs in its own atomic block. A failure rolls back that
reaction's writes only, is recorded on its ReactionRun and logged as
"reaction_failed" with the event id, type, reaction name and payload. It
never propagates to the caller of emit() or dispatch_event().

Known gap: events are recorded after the aggregate commit, so a crash
between the commit and emit() loses the event and its follow-ups.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from events.models import DomainEvent, ReactionRun
from events.reactions import BaseReaction, reaction_registry
from events.types import BaseEventData, validate_event_payload

logger = logging.getLogger(__name__)


def emit(
    event_type: str,
    data: Union[Dict[str, Any], BaseEventData],
    *,
    aggregate_type: str,
    aggregate_id: Any,
    user=None,
    metadata: Optional[Dict[str, Any]] = None,
) -> DomainEvent:
    """
    Record a domain event and dispatch its reactions.

    Args:
        event_type: Registered event type (see events.types.EventTypes)
        data: Payload, dict or BaseEventData instance
        aggregate_type: e.g. "Company"
        aggregate_id: public id of the aggregate root
        user: The user who caused the event (None for system events)
        metadata: Optional request context

    Returns:
        The recorded DomainEvent

    Raises:
        InvalidEventPayload: If data doesn't match the schema
    """
    if isinstance(data, BaseEventData):
        data = data.to_dict()

    if not getattr(settings, "DISABLE_EVENT_VALIDATION", False):
        validate_event_payload(event_type, data)

    if user is not None and not getattr(user, "pk", None):
        user = None

    event = DomainEvent.objects.create(
        event_type=event_type,
        aggregate_type=aggregate_type,
        aggregate_id=str(aggregate_id),
        data=data,
        metadata=metadata or {},
        caused_by_user=user,
        occurred_at=timezone.now(),
    )
    logger.info(
        "event_emitted",
        extra={"event_id": str(event.id), "event_type": event_type, "aggregate_id": str(aggregate_id)},
    )

    if not reaction_registry.for_event_type(event_type):
        return event

    if getattr(settings, "REACTIONS_SYNC", False):
        dispatch_event(event)
    else:
        transaction.on_commit(lambda: _enqueue(event.id))

    return event


def _enqueue(event_id) -> None:
    from events.tasks import dispatch_event_task

    try:
        dispatch_event_task.delay(str(event_id))
    except Exception:
        # Runs stay missing/PENDING and are picked up by reconciliation.
        logger.exception("reaction_enqueue_failed", extra={"event_id": str(event_id)})


def dispatch_event(event: DomainEvent) -> Dict[str, str]:
    """
    Run every reaction registered for the event's type, in registration order.

    Returns:
        {reaction_name: final ReactionRun status}
    """
    results = {}
    for reaction in reaction_registry.for_event_type(event.event_type):
        results[reaction.name] = run_reaction(reaction, event)
    return results


def run_reaction(reaction: BaseReaction, event: DomainEvent) -> str:
    """
    Run one reaction for one event, isolated from everything else.

    A run that already SUCCEEDED is not repeated.
    """
    run, _ = ReactionRun.objects.get_or_create(event=event, reaction_name=reaction.name)
    if run.status == ReactionRun.Status.SUCCEEDED:
        return run.status

    run.mark_started()
    try:
        with transaction.atomic():
            locked = ReactionRun.objects.select_for_update().get(pk=run.pk)
            if locked.status == ReactionRun.Status.SUCCEEDED:
                return locked.status
            reaction.handle(event)
            locked.mark_succeeded()
            run = locked
    except Exception as exc:
        logger.exception(
            "reaction_failed",
            extra={
                "event_id": str(event.id),
                "event_type": event.event_type,
                "reaction": reaction.name,
                "payload": event.data,
                "attempt": run.attempts,
            },
        )
        run.refresh_from_db()
        run.mark_failed(f"{type(exc).__name__}: {exc}")
        return run.status

    logger.info(
        "reaction_succeeded",
        extra={"event_id": str(event.id), "event_type": event.event_type, "reaction": reaction.name},
    )
    return run.status
