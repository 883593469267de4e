"""WSGI entry point: gunicorn staffdesk_backend.wsgi"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "staffdesk_backend.settings")

application = get_wsgi_application()
