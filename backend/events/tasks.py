"""
Celery tasks for async reaction dispatch.

Tasks:
- dispatch_event_task: run the reactions of one recorded event
- reconcile_reactions: re-dispatch events with missing/failed reaction runs

Usage:
    # Enqueued automatically by events.dispatcher.emit() on commit
    dispatch_event_task.delay(str(event.id))

    # Scheduled periodic reconciliation
    # Configured in CELERY_BEAT_SCHEDULE (settings) or Django admin -> Periodic Tasks
"""
import logging
from typing import Optional

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(bind=True, ignore_result=True)
def dispatch_event_task(self, event_id: str) -> dict:
    """
    Dispatch one event's reactions.

    Reaction failures are recorded on ReactionRun and never raise here,
    so there is nothing for Celery to retry; reconciliation covers them.
    """
    from events.dispatcher import dispatch_event
    from events.models import DomainEvent

    try:
        event = DomainEvent.objects.get(id=event_id)
    except DomainEvent.DoesNotExist:
        logger.error("dispatch_event_missing", extra={"event_id": event_id})
        return {"error": f"Event {event_id} not found"}

    return dispatch_event(event)


@shared_task(bind=True, ignore_result=True)
def reconcile_reactions(self, grace_seconds: Optional[int] = None, limit: int = 100) -> dict:
    from events.reconciliation import reconcile

    report = reconcile(grace_seconds=grace_seconds, limit=limit)
    failed = sum(
        1 for item in report
        if any(status != "SUCCEEDED" for status in item["results"].values())
    )
    logger.info(
        "reconcile_reactions_completed",
        extra={"events": len(report), "still_failing": failed},
    )
    return {"events": len(report), "still_failing": failed}
