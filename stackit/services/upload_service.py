"""
stackit.services.upload_service — Image uploads
=================================================

Images attached to questions and answers.  Files are stored in a
configurable ``uploads/`` directory and served via a static-file mount;
questions and answers only keep the returned URL strings.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from pathlib import Path

from sqlalchemy import Engine
from sqlalchemy.orm import Session

from stackit.constants import MAX_UPLOAD_BYTES
from stackit.database.engine import run_transaction
from stackit.database.models import UploadedImage
from stackit.errors import ValidationError

logger = logging.getLogger(__name__)

UPLOAD_DIR = Path(os.getenv("STACKIT_UPLOAD_DIR", "uploads"))
URL_PREFIX = "/api/uploads/"
ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}


def ensure_upload_dir() -> None:
    """Create the upload directory if it doesn't exist."""
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)


def validate_image(filename: str, content: bytes, content_type: str | None) -> str:
    """Check an upload and return its normalised extension.

    Raises
    ------
    ValidationError
        Not an ``image/*`` MIME type, extension not allowed, empty, or
        larger than 1 MB.
    """
    if not content_type or not content_type.startswith("image/"):
        raise ValidationError("Only image files are allowed")
    if not content:
        raise ValidationError("Uploaded file is empty")
    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationError(f"File too large (max {MAX_UPLOAD_BYTES // 1024 // 1024}MB)")

    ext = Path(filename).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"File type not allowed: {ext!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )
    return ext


async def save_upload(filename: str, content: bytes, content_type: str | None = None) -> str:
    """Validate and persist an uploaded image.

    Returns
    -------
    str
        URL path to the saved file (e.g. ``/api/uploads/abc123.png``).
    """
    ext = validate_image(filename, content, content_type)

    # Random name so uploads never collide or overwrite each other
    unique_name = f"{uuid.uuid4().hex}{ext}"
    dest = UPLOAD_DIR / unique_name

    await asyncio.to_thread(dest.write_bytes, content)
    return f"{URL_PREFIX}{unique_name}"


def _record_upload(
    session: Session,
    url: str,
    original_name: str,
    content_type: str | None,
    size_bytes: int,
    uploaded_by: int,
) -> dict:
    image = UploadedImage(
        filename=url.rsplit("/", 1)[-1],
        original_name=original_name,
        url=url,
        content_type=content_type,
        size_bytes=size_bytes,
        uploaded_by=uploaded_by,
    )
    session.add(image)
    session.flush()
    return {"id": image.id, "url": image.url, "filename": image.filename}


def record_upload(
    engine: Engine,
    *,
    url: str,
    original_name: str,
    content_type: str | None,
    size_bytes: int,
    uploaded_by: int,
) -> dict:
    result = run_transaction(
        engine, _record_upload, url, original_name, content_type, size_bytes, uploaded_by
    )
    logger.info("Image %s uploaded by user %s (%d bytes)", url, uploaded_by, size_bytes)
    return result


def delete_upload(url_path: str) -> bool:
    """Remove an uploaded file by its URL path.

    Returns True if the file existed and was deleted.
    """
    if not url_path.startswith(URL_PREFIX):
        return False
    filepath = UPLOAD_DIR / url_path.rsplit("/", 1)[-1]
    if filepath.exists() and filepath.is_file():
        filepath.unlink()
        return True
    return False
