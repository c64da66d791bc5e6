"""Serves local preview bytes for picked-but-not-uploaded images."""

from fastapi import APIRouter, Depends, HTTPException
from starlette.responses import Response

from blogcore.runtime import Runtime
from blogcore.routers.deps import get_runtime

router = APIRouter()


@router.get("/{handle}")
async def get_preview(handle: str, runtime: Runtime = Depends(get_runtime)) -> Response:
    try:
        file = runtime.previews.get(handle)
    except KeyError:
        raise HTTPException(status_code=404, detail="Preview revoked or unknown")
    return Response(content=file.data, media_type=file.content_type)
