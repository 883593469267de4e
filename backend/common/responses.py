# common/responses.py
"""
Response envelope shared by every endpoint:

    {"statusCode": int, "message": str, "data"?: any, "error"?: any}

Paged lists add totalItems / currentPage / itemsPerPage next to data.
Validation failures (400) carry their [{"field", "error"}] list in data.
`error` only carries diagnostic detail when DEBUG is on.
"""

import logging
from typing import Any, Optional

from django.conf import settings
from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework.response import Response

from common.errors import AppError, ValidationError

logger = logging.getLogger(__name__)


def envelope(status_code: int, message: str, data: Any = None, error: Any = None, **extra) -> dict:
    body = {"statusCode": status_code, "message": message}
    if data is not None:
        body["data"] = data
    body.update(extra)
    if error is not None and settings.DEBUG:
        body["error"] = error
    return body


class ServiceResult:
    """
    What an aggregate service hands back to its view.

    `event` is the DomainEvent emitted for the mutation, if any; it is not
    part of the wire envelope.
    """

    def __init__(self, status_code: int, message: str, data=None, event=None, extra: Optional[dict] = None):
        self.status_code = status_code
        self.message = message
        self.data = data
        self.event = event
        self.extra = extra or {}

    @classmethod
    def ok(cls, message: str, data=None, event=None, **extra):
        return cls(200, message, data=data, event=event, extra=extra)

    @classmethod
    def created(cls, message: str, data=None, event=None):
        return cls(201, message, data=data, event=event)

    def to_envelope(self) -> dict:
        return envelope(self.status_code, self.message, data=self.data, **self.extra)

    def to_response(self) -> Response:
        return Response(self.to_envelope(), status=self.status_code)


def paged(queryset, page: int, limit: int):
    """Slice a queryset for one page; returns (items, extras)."""
    page = max(int(page or 1), 1)
    limit = max(int(limit or 15), 1)
    total = queryset.count()
    offset = (page - 1) * limit
    items = list(queryset[offset:offset + limit])
    return items, {"totalItems": total, "currentPage": page, "itemsPerPage": limit}


def envelope_exception_handler(exc, context):
    """DRF EXCEPTION_HANDLER: every failure leaves in the envelope shape."""
    if isinstance(exc, AppError):
        if exc.status_code >= 500:
            logger.error("request_failed", extra={"error": exc.message, "status": exc.status_code})
        if isinstance(exc, ValidationError):
            body = envelope(exc.status_code, exc.message, data=exc.diagnostic())
        else:
            body = envelope(exc.status_code, exc.message, error=exc.diagnostic())
        return Response(body, status=exc.status_code)

    if isinstance(exc, Http404):
        return Response(envelope(404, "Not found"), status=404)

    if isinstance(exc, DjangoPermissionDenied):
        return Response(envelope(403, str(exc) or "Permission denied"), status=403)

    if isinstance(exc, drf_exceptions.APIException):
        status_code = exc.status_code
        detail = exc.detail
        if isinstance(exc, drf_exceptions.ValidationError):
            body = envelope(status_code, "Validation failed", data=_flatten_drf_errors(detail))
            return Response(body, status=status_code)
        headers = {}
        if getattr(exc, "auth_header", None):
            headers["WWW-Authenticate"] = exc.auth_header
        return Response(envelope(status_code, str(detail)), status=status_code, headers=headers)

    view = context.get("view")
    logger.exception("unhandled_exception", extra={"view": type(view).__name__ if view else None})
    return Response(
        envelope(500, "Internal server error", error=repr(exc)),
        status=500,
    )


def _flatten_drf_errors(detail, prefix: str = "") -> list:
    errors = []
    if isinstance(detail, dict):
        for key, value in detail.items():
            name = f"{prefix}.{key}" if prefix else str(key)
            errors.extend(_flatten_drf_errors(value, name))
    elif isinstance(detail, list):
        for item in detail:
            if isinstance(item, (dict, list)):
                errors.extend(_flatten_drf_errors(item, prefix))
            else:
                errors.append({"field": prefix or "non_field_errors", "error": str(item)})
    else:
        errors.append({"field": prefix or "non_field_errors", "error": str(detail)})
    return errors
