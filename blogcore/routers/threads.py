"""Thread view endpoints.

Drive the single ``ThreadSynchronizer``: switch the viewed post, read the
view state, post / remove comments, and run the inline edit session.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel

from blogcore.core.errors import BlogCoreError
from blogcore.models.edit import EditSessionState, Replace
from blogcore.runtime import Runtime
from blogcore.routers.deps import get_runtime, raise_http, to_candidate
from blogcore.sync.thread import ThreadSynchronizer

logger = logging.getLogger(__name__)

router = APIRouter()


class EditTextRequest(BaseModel):
    content: str


def _edit_payload(snapshot: EditSessionState | None) -> dict[str, Any] | None:
    if snapshot is None:
        return None
    disposition: dict[str, Any] = {"kind": snapshot.disposition.kind}
    if isinstance(snapshot.disposition, Replace):
        disposition["filename"] = snapshot.disposition.file.filename
        disposition["size"] = snapshot.disposition.file.size
    return {
        "comment_id": str(snapshot.comment_id),
        "phase": snapshot.phase.value,
        "draft_text": snapshot.draft_text,
        "disposition": disposition,
        "original": snapshot.original.model_dump() if snapshot.original else None,
        "preview_handle": snapshot.preview_handle,
    }


def _state_payload(thread: ThreadSynchronizer) -> dict[str, Any]:
    state = thread.state
    session = thread.edit_session
    return {
        "post_id": str(state.post_id) if state.post_id else None,
        "status": state.status.value,
        "loading": state.loading,
        "error": state.error,
        "comments": [c.model_dump(mode="json") for c in state.comments],
        "edit": _edit_payload(session.snapshot() if session else None),
        "compose_preview": thread.composer.preview_handle,
    }


# ---------------------------------------------------------------------------
# View lifecycle
# ---------------------------------------------------------------------------


@router.get("", status_code=200)
async def get_thread(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    return _state_payload(runtime.thread)


@router.put("/{post_id}", status_code=200)
async def switch_thread(
    post_id: UUID, runtime: Runtime = Depends(get_runtime)
) -> dict[str, Any]:
    """Switch the viewed post; the comment list loads in the background."""
    try:
        await runtime.thread.switch_to(post_id)
    except BlogCoreError as exc:
        raise_http(exc)
    return _state_payload(runtime.thread)


@router.delete("", status_code=200)
async def close_thread(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    await runtime.thread.close()
    return _state_payload(runtime.thread)


@router.post("/refresh", status_code=200)
async def refresh_thread(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    try:
        await runtime.thread.refresh()
    except BlogCoreError as exc:
        raise_http(exc)
    return _state_payload(runtime.thread)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


@router.post("/comments", status_code=201)
async def post_comment(
    content: str = Form(""),
    file: UploadFile | None = File(None),
    runtime: Runtime = Depends(get_runtime),
) -> dict[str, Any]:
    try:
        candidate = await to_candidate(file) if file is not None else None
        comment = await runtime.thread.post(content, candidate)
    except BlogCoreError as exc:
        raise_http(exc)
    return comment.model_dump(mode="json")


@router.delete("/comments/{comment_id}", status_code=200)
async def delete_comment(
    comment_id: UUID, runtime: Runtime = Depends(get_runtime)
) -> dict[str, Any]:
    try:
        removed = await runtime.thread.remove(comment_id)
    except BlogCoreError as exc:
        raise_http(exc)
    return {"id": str(removed)}


@router.put("/compose/image", status_code=200)
async def select_compose_image(
    file: UploadFile = File(...), runtime: Runtime = Depends(get_runtime)
) -> dict[str, Any]:
    try:
        handle = runtime.thread.select_image(await to_candidate(file))
    except BlogCoreError as exc:
        raise_http(exc)
    return {"preview_handle": handle}


@router.delete("/compose/image", status_code=200)
async def clear_compose_image(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    runtime.thread.clear_image()
    return {"preview_handle": None}


# ---------------------------------------------------------------------------
# Inline edit
# ---------------------------------------------------------------------------


# Must precede /edit/{comment_id}
@router.post("/edit/save", status_code=200)
async def save_edit(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    try:
        updated = await runtime.thread.save_edit()
    except BlogCoreError as exc:
        raise_http(exc)
    return updated.model_dump(mode="json")


@router.post("/edit/{comment_id}", status_code=200)
async def start_edit(
    comment_id: UUID, runtime: Runtime = Depends(get_runtime)
) -> dict[str, Any] | None:
    try:
        snapshot = runtime.thread.start_edit(comment_id)
    except BlogCoreError as exc:
        raise_http(exc)
    return _edit_payload(snapshot)


@router.patch("/edit", status_code=200)
async def set_edit_text(
    body: EditTextRequest, runtime: Runtime = Depends(get_runtime)
) -> dict[str, Any] | None:
    try:
        snapshot = runtime.thread.set_edit_text(body.content)
    except BlogCoreError as exc:
        raise_http(exc)
    return _edit_payload(snapshot)


@router.put("/edit/image", status_code=200)
async def select_edit_image(
    file: UploadFile = File(...), runtime: Runtime = Depends(get_runtime)
) -> dict[str, Any] | None:
    try:
        snapshot = runtime.thread.select_edit_image(await to_candidate(file))
    except BlogCoreError as exc:
        raise_http(exc)
    return _edit_payload(snapshot)


@router.delete("/edit/image", status_code=200)
async def remove_edit_image(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any] | None:
    try:
        snapshot = runtime.thread.remove_edit_image()
    except BlogCoreError as exc:
        raise_http(exc)
    return _edit_payload(snapshot)


@router.delete("/edit", status_code=200)
async def cancel_edit(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    runtime.thread.cancel_edit()
    return {"edit": None}
