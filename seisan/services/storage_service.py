"""Object storage for receipts, documents and attachments.

Keys follow ``{userId}/{timestamp}.{ext}``; callers persist only the returned
path. The filesystem backend is rooted at ``STORAGE_ROOT``.
"""
from __future__ import annotations

import logging
import os
import time
from pathlib import Path

from flask import current_app
from werkzeug.utils import secure_filename

from seisan.services.errors import ValidationError

logger = logging.getLogger(__name__)

BUCKETS = {
    "receipts": {"image/jpeg", "image/png", "image/gif", "application/pdf"},
    "documents": {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/html",
    },
    "attachments": {"image/jpeg", "image/png", "image/gif", "application/pdf", "text/plain"},
}


def build_object_key(user_id: str, filename: str) -> str:
    ext = Path(secure_filename(filename or "")).suffix.lstrip(".").lower() or "bin"
    return f"{user_id}/{int(time.time() * 1000)}.{ext}"


def _bucket_root(bucket: str) -> Path:
    if bucket not in BUCKETS:
        raise ValidationError(f"Unknown storage bucket '{bucket}'.")
    return Path(current_app.config["STORAGE_ROOT"]) / bucket


def save_object(bucket: str, key: str, content: bytes, content_type: str | None = None) -> str:
    """Write ``content`` and return the ``bucket/key`` path."""
    if content_type and content_type not in BUCKETS.get(bucket, set()):
        raise ValidationError(f"Content type '{content_type}' is not allowed in '{bucket}'.")

    target = _bucket_root(bucket) / key
    os.makedirs(target.parent, exist_ok=True)
    target.write_bytes(content)
    logger.info(f"Stored {len(content)} bytes at {bucket}/{key}")
    return f"{bucket}/{key}"


def read_object(path: str) -> bytes:
    bucket, _, key = path.partition("/")
    return (_bucket_root(bucket) / key).read_bytes()


def delete_object(path: str) -> None:
    """Remove a stored object; a missing file is not an error."""
    bucket, _, key = path.partition("/")
    target = _bucket_root(bucket) / key
    if target.exists():
        target.unlink()
        logger.info(f"Deleted {path}")
