# events/views.py
"""
Event log and reconciliation API.

All endpoints are platform-admin only (ADMIN / DEVELOPER).

GET  /api/events/                      -> event log (filters: event_type, aggregate_type, aggregate_id)
GET  /api/events/<id>/                 -> one event with its reaction runs
GET  /api/events/reactions/            -> reaction runs (filters: status, reaction_name)
GET  /api/events/unreconciled/         -> events missing a successful reaction run
POST /api/events/reconcile/            -> re-dispatch unreconciled events
POST /api/events/<id>/reconcile/       -> re-dispatch one event
"""

from django.shortcuts import get_object_or_404
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.authz import require_roles, resolve_actor
from accounts.roles import Role
from common.responses import envelope
from events.models import DomainEvent, ReactionRun
from events.reconciliation import find_unreconciled, reconcile, reconcile_event
from events.serializers import DomainEventSerializer, ReactionRunSerializer

PLATFORM_ROLES = {Role.ADMIN, Role.DEVELOPER}
MAX_ROWS = 200


def _int_param(request, name, default):
    try:
        return int(request.query_params.get(name, default))
    except (TypeError, ValueError):
        return default


class EventListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        require_roles(resolve_actor(request), PLATFORM_ROLES)

        qs = DomainEvent.objects.select_related("caused_by_user").prefetch_related("reaction_runs").order_by("-recorded_at")
        for param in ("event_type", "aggregate_type", "aggregate_id"):
            value = request.query_params.get(param)
            if value:
                qs = qs.filter(**{param: value})

        data = DomainEventSerializer(qs[:MAX_ROWS], many=True).data
        return Response(envelope(200, "Events retrieved", data=data))


class EventDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, id):
        require_roles(resolve_actor(request), PLATFORM_ROLES)
        event = get_object_or_404(DomainEvent.objects.prefetch_related("reaction_runs"), id=id)
        return Response(envelope(200, "Event retrieved", data=DomainEventSerializer(event).data))


class ReactionRunListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        require_roles(resolve_actor(request), PLATFORM_ROLES)

        qs = ReactionRun.objects.select_related("event").order_by("-updated_at")
        status_filter = request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter.upper())
        reaction_name = request.query_params.get("reaction_name")
        if reaction_name:
            qs = qs.filter(reaction_name=reaction_name)

        data = ReactionRunSerializer(qs[:MAX_ROWS], many=True).data
        return Response(envelope(200, "Reaction runs retrieved", data=data))


class UnreconciledEventListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        require_roles(resolve_actor(request), PLATFORM_ROLES)
        events = find_unreconciled(
            grace_seconds=_int_param(request, "grace_seconds", None),
            limit=min(_int_param(request, "limit", 100), MAX_ROWS),
        )
        data = DomainEventSerializer(events, many=True).data
        return Response(envelope(200, "Unreconciled events retrieved", data=data))


class ReconcileView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        require_roles(resolve_actor(request), PLATFORM_ROLES)
        report = reconcile(
            grace_seconds=_int_param(request, "grace_seconds", None),
            limit=min(_int_param(request, "limit", 100), MAX_ROWS),
        )
        return Response(envelope(200, f"Reconciled {len(report)} event(s)", data=report))


class ReconcileEventView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, id):
        require_roles(resolve_actor(request), PLATFORM_ROLES)
        report = reconcile_event(id)
        return Response(envelope(200, "Event reconciled", data=report))
