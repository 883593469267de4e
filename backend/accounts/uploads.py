# accounts/uploads.py
"""
Multipart request handling.

Turns a request body into a plain dict before it reaches a serializer:
- uploaded files are stored with default_storage and replaced by their URL
- "company[name]" style keys become nested dicts
- nested objects sent as JSON strings (e.g. company='{"name": ...}') are decoded

Services therefore only ever see string references, never file bytes.
"""

import json
import logging
import re
import uuid

from django.core.files.storage import default_storage
from django.utils.text import get_valid_filename

from common.errors import FieldError, ValidationError

logger = logging.getLogger(__name__)

_BRACKET_KEY = re.compile(r"^(?P<outer>\w+)\[(?P<inner>\w+)\]$")


def store_upload(upload, folder: str) -> str:
    name = f"{folder}/{uuid.uuid4().hex}_{get_valid_filename(upload.name)}"
    saved = default_storage.save(name, upload)
    logger.info("upload_stored", extra={"path": saved, "size": getattr(upload, "size", None)})
    return default_storage.url(saved)


def _assign(data: dict, key: str, value) -> None:
    match = _BRACKET_KEY.match(key)
    if match:
        data.setdefault(match.group("outer"), {})[match.group("inner")] = value
    else:
        data[key] = value


def request_payload(request, nested=(), folder: str = "uploads") -> dict:
    """
    Plain dict of the request body with files resolved to URLs.

    Args:
        request: DRF request
        nested: keys whose value may arrive as a JSON-encoded string
        folder: storage folder for uploaded files
    """
    raw = request.data
    files = getattr(request, "FILES", None) or {}

    if not hasattr(raw, "getlist"):
        return dict(raw)

    data = {}
    for key in raw.keys():
        if key in files:
            continue
        _assign(data, key, raw.get(key))

    errors = []
    for key in nested:
        value = data.get(key)
        if isinstance(value, str):
            try:
                decoded = json.loads(value) if value.strip() else {}
            except ValueError:
                errors.append(FieldError(key, "must be a JSON object"))
                continue
            if not isinstance(decoded, dict):
                errors.append(FieldError(key, "must be a JSON object"))
                continue
            data[key] = decoded
    if errors:
        raise ValidationError(errors)

    for key in files.keys():
        upload = files[key]
        match = _BRACKET_KEY.match(key)
        subfolder = f"{folder}/{match.group('outer')}" if match else folder
        url = store_upload(upload, subfolder)
        if match:
            outer = data.setdefault(match.group("outer"), {})
            if not isinstance(outer, dict):
                raise ValidationError([FieldError(match.group("outer"), "must be an object")])
            outer[match.group("inner")] = url
        else:
            data[key] = url

    return data
