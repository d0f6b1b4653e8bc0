"""
stackit.api.routes.uploads — Image upload
===========================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, UploadFile, status
from sqlalchemy import Engine

from stackit.api.deps import get_engine
from stackit.api.rate_limit import rate_limited_user
from stackit.constants import MAX_UPLOAD_BYTES
from stackit.database.engine import run_db
from stackit.engine.permissions import Action, Principal, require_permission
from stackit.errors import StackItError
from stackit.services import upload_service

router = APIRouter(tags=["uploads"])
logger = logging.getLogger(__name__)


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_image(
    file: UploadFile,
    user: Principal = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
):
    """Upload one image (≤ 1 MB) and return its URL."""
    require_permission(user, Action.UPLOAD)

    # One byte past the limit is enough to reject an oversized body.
    content = await file.read(MAX_UPLOAD_BYTES + 1)
    original_name = file.filename or "upload.png"
    url = await upload_service.save_upload(original_name, content, file.content_type)
    try:
        return await run_db(
            upload_service.record_upload,
            engine,
            url=url,
            original_name=original_name,
            content_type=file.content_type,
            size_bytes=len(content),
            uploaded_by=user.id,
        )
    except StackItError:
        # Don't leave an untracked file behind
        upload_service.delete_upload(url)
        raise
