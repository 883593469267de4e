# events/urls.py
"""
URL configuration for the event log and reconciliation API.
"""

from django.urls import path

from events.views import (
    EventListView,
    EventDetailView,
    ReactionRunListView,
    UnreconciledEventListView,
    ReconcileView,
    ReconcileEventView,
)


app_name = "events"

urlpatterns = [
    path("", EventListView.as_view(), name="event-list"),
    path("reactions/", ReactionRunListView.as_view(), name="reaction-run-list"),
    path("unreconciled/", UnreconciledEventListView.as_view(), name="unreconciled-list"),
    path("reconcile/", ReconcileView.as_view(), name="reconcile"),
    path("<uuid:id>/", EventDetailView.as_view(), name="event-detail"),
    path("<uuid:id>/reconcile/", ReconcileEventView.as_view(), name="event-reconcile"),
]
