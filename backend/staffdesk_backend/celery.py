"""
Celery application configuration.

This is the Celery app for the staffdesk backend. It runs reactions to
domain events off the request path and the periodic reconciliation job.

Usage:
    # Start worker
    celery -A staffdesk_backend worker -l INFO

    # Start beat scheduler (for periodic tasks)
    celery -A staffdesk_backend beat -l INFO

    # Start both (development only)
    celery -A staffdesk_backend worker -B -l INFO
"""
import os

from celery import Celery

# Set default Django settings
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "staffdesk_backend.settings")

app = Celery("staffdesk_backend")

# Load config from Django settings
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks from all installed apps
app.autodiscover_tasks()
