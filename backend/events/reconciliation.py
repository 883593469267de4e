# events/reconciliation.py
"""
Detect and repair events whose follow-up reactions did not all succeed.

An event is unreconciled when at least one reaction registered for its
type has no SUCCEEDED ReactionRun: the reaction failed, its task was never
enqueued, or a worker died mid-run. Re-dispatching is safe because
reactions are idempotent and succeeded runs are skipped.

Entry points:
- reconcile_reactions Celery task (periodic, via django-celery-beat)
- `manage.py reconcile_reactions`
- POST /api/events/<id>/reconcile/ (ADMIN)
"""

import logging
from datetime import timedelta
from typing import Iterable, List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Count, Q
from django.utils import timezone

from common.errors import NotFoundError
from events.dispatcher import dispatch_event
from events.models import DomainEvent, ReactionRun
from events.reactions import reaction_registry

logger = logging.getLogger(__name__)


def _unreconciled_queryset(event_type: str, cutoff):
    names = [r.name for r in reaction_registry.for_event_type(event_type)]
    return (
        DomainEvent.objects.filter(event_type=event_type, recorded_at__lte=cutoff)
        .annotate(
            succeeded_runs=Count(
                "reaction_runs",
                filter=Q(
                    reaction_runs__status=ReactionRun.Status.SUCCEEDED,
                    reaction_runs__reaction_name__in=names,
                ),
            )
        )
        .filter(succeeded_runs__lt=len(names))
    )


def _cutoff(grace_seconds: Optional[int]):
    if grace_seconds is None:
        grace_seconds = getattr(settings, "RECONCILE_GRACE_SECONDS", 300)
    return timezone.now() - timedelta(seconds=grace_seconds)


def find_unreconciled(grace_seconds: Optional[int] = None, limit: int = 100) -> List[DomainEvent]:
    """
    Oldest-first list of events still missing a successful reaction run.

    Events younger than grace_seconds are skipped; their reactions may
    still be queued.
    """
    cutoff = _cutoff(grace_seconds)
    pending = []
    for event_type in reaction_registry.event_types():
        pending.extend(_unreconciled_queryset(event_type, cutoff).order_by("recorded_at")[:limit])
    pending.sort(key=lambda e: e.recorded_at)
    return pending[:limit]


def count_unreconciled(grace_seconds: Optional[int] = None) -> int:
    cutoff = _cutoff(grace_seconds)
    return sum(
        _unreconciled_queryset(event_type, cutoff).count()
        for event_type in reaction_registry.event_types()
    )


def reconcile_events(events: Iterable[DomainEvent]) -> List[dict]:
    report = []
    for event in events:
        results = dispatch_event(event)
        logger.info(
            "event_reconciled",
            extra={"event_id": str(event.id), "event_type": event.event_type, "results": results},
        )
        report.append({
            "event_id": str(event.id),
            "event_type": event.event_type,
            "results": results,
        })
    return report


def reconcile(grace_seconds: Optional[int] = None, limit: int = 100) -> List[dict]:
    """Re-dispatch every unreconciled event older than the grace period."""
    return reconcile_events(find_unreconciled(grace_seconds=grace_seconds, limit=limit))


def reconcile_event(event_id) -> dict:
    """Re-dispatch a single event regardless of age."""
    try:
        event = DomainEvent.objects.get(id=event_id)
    except (DomainEvent.DoesNotExist, DjangoValidationError, ValueError) as exc:
        raise NotFoundError(f"Event {event_id} not found") from exc
    return reconcile_events([event])[0]
