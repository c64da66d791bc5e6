"""Post endpoints.

Create / read / edit posts with an optional image, and the cascading
delete that reclaims every blob of the post and its comments before the
row goes away.
"""

from __future__ import annotations

import logging
from typing import Any, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile

from blogcore.core.errors import BlogCoreError, ValidationError
from blogcore.models.edit import Keep, Remove, Replace
from blogcore.runtime import Runtime
from blogcore.routers.deps import get_runtime, raise_http, to_candidate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=201)
async def create_post(
    title: str = Form(...),
    content: str = Form(...),
    file: UploadFile | None = File(None),
    runtime: Runtime = Depends(get_runtime),
) -> dict[str, Any]:
    try:
        candidate = await to_candidate(file) if file is not None else None
        author_id = await runtime.identity.current_user_id()
        post = await runtime.posts.create(title, content, author_id, candidate)
    except BlogCoreError as exc:
        raise_http(exc)
    return post.model_dump(mode="json")


@router.get("/{post_id}", status_code=200)
async def get_post(post_id: UUID, runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    try:
        post = await runtime.posts.get(post_id)
    except BlogCoreError as exc:
        raise_http(exc)
    return post.model_dump(mode="json")


@router.put("/{post_id}", status_code=200)
async def update_post(
    post_id: UUID,
    title: str = Form(...),
    content: str = Form(...),
    image: Literal["keep", "remove", "replace"] = Form("keep"),
    file: UploadFile | None = File(None),
    runtime: Runtime = Depends(get_runtime),
) -> dict[str, Any]:
    """Edit a post.  ``image=replace`` requires ``file``."""
    try:
        if image == "replace" or file is not None:
            if file is None:
                raise ValidationError("image=replace needs a file")
            disposition: Keep | Replace | Remove = Replace(file=await to_candidate(file))
        elif image == "remove":
            disposition = Remove()
        else:
            disposition = Keep()
        post = await runtime.posts.update(post_id, title, content, disposition)
    except BlogCoreError as exc:
        raise_http(exc)
    return post.model_dump(mode="json")


@router.delete("/{post_id}", status_code=200)
async def delete_post(post_id: UUID, runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    """Reclaim the post's blobs, delete the row, and close its thread if viewed."""
    try:
        report = await runtime.cleanup.delete_post(post_id)
    except BlogCoreError as exc:
        raise_http(exc)

    if runtime.thread.active_post_id == post_id:
        await runtime.thread.close()

    return report.model_dump(mode="json")
