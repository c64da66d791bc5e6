"""Shared router helpers: runtime lookup, upload conversion, error mapping."""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import HTTPException, Request, UploadFile

from blogcore.core.errors import (
    BlogCoreError,
    EditSessionError,
    NoActiveThread,
    NotFound,
    ThreadBusy,
    TransportError,
    ValidationError,
)
from blogcore.models.attachment import CandidateFile
from blogcore.runtime import Runtime

logger = logging.getLogger(__name__)


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


async def to_candidate(upload: UploadFile) -> CandidateFile:
    return CandidateFile(
        filename=upload.filename or "upload",
        content_type=upload.content_type or "application/octet-stream",
        data=await upload.read(),
    )


def raise_http(exc: BlogCoreError) -> NoReturn:
    """Map a core error onto the matching HTTP status."""
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if isinstance(exc, NotFound):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, (ThreadBusy, NoActiveThread, EditSessionError)):
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    if isinstance(exc, TransportError):
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    logger.error("unmapped_core_error", extra={"error_type": type(exc).__name__})
    raise HTTPException(status_code=500, detail=str(exc)) from exc
