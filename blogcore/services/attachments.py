"""Image attachment validation and blob storage.

``validate_image`` is the pure gate every attachment passes before upload.
``AttachmentStore`` talks to one Supabase Storage bucket: it uploads under
owner-scoped, collision-resistant paths, derives public URLs, and deletes
best-effort so a missing blob never blocks a row mutation.
"""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import unquote, urlparse
from uuid import UUID, uuid4

import httpx

from blogcore.core.config import settings
from blogcore.core.constants import (
    ALLOWED_IMAGE_TYPES,
    IMAGE_EXTENSIONS,
    MAX_IMAGE_BYTES,
    PUBLIC_OBJECT_MARKER,
)
from blogcore.core.errors import (
    CleanupError,
    InvalidType,
    TooLarge,
    TransportError,
    UploadFailed,
)
from blogcore.models.attachment import AttachmentRef, CandidateFile
from blogcore.models.edit import AttachmentDisposition, Keep, Remove

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_image(file: CandidateFile) -> None:
    """Reject *file* unless it is an accepted image type within the ceiling.

    Raises ``InvalidType`` or ``TooLarge``.  No I/O.
    """
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise InvalidType(
            "Invalid file type. Please upload JPEG, PNG, WebP, or GIF images."
        )
    if file.size > MAX_IMAGE_BYTES:
        raise TooLarge("File too large. Maximum size is 5MB.")


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

def _file_extension(file: CandidateFile) -> str:
    _, dot, ext = file.filename.rpartition(".")
    ext = ext.lower()
    if dot and ext.isalnum() and len(ext) <= 5:
        return ext
    return IMAGE_EXTENSIONS.get(file.content_type, "bin")


def build_object_path(owner_id: UUID, file: CandidateFile, now_ms: int | None = None) -> str:
    """Return ``{owner}/{owner}_{millis}_{token}.{ext}`` for a new upload."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    token = uuid4().hex[:8]
    return f"{owner_id}/{owner_id}_{now_ms}_{token}.{_file_extension(file)}"


def path_from_public_url(url: str, bucket: str) -> str | None:
    """Recover the object path from a public URL, or ``None``.

    Only the canonical ``.../object/public/{bucket}/{path}`` shape is
    accepted, so a bucket-named segment elsewhere in the URL is ignored.
    """
    segments = [unquote(s) for s in urlparse(url).path.split("/")]
    marker = list(PUBLIC_OBJECT_MARKER)
    for idx in range(len(segments) - 2):
        if segments[idx:idx + 2] == marker and segments[idx + 2] == bucket:
            path = "/".join(s for s in segments[idx + 3:] if s)
            return path or None
    return None


# ---------------------------------------------------------------------------
# Store client
# ---------------------------------------------------------------------------

class AttachmentStore:
    """Stateless client for one storage bucket."""

    def __init__(
        self,
        client: Any,
        bucket: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client
        self.bucket = bucket or settings.STORAGE_BUCKET
        self._http = http_client

    def _bucket(self) -> Any:
        return self._client.storage.from_(self.bucket)

    async def public_url(self, path: str) -> str:
        return await self._bucket().get_public_url(path)

    async def upload(self, file: CandidateFile, owner_id: UUID) -> AttachmentRef:
        """Validate and store *file*; return its path and public URL.

        Raises ``UploadFailed`` on any storage error.  Nothing is assumed to
        be stored when it raises.
        """
        validate_image(file)
        path = build_object_path(owner_id, file)
        try:
            await self._bucket().upload(
                path,
                file.data,
                file_options={
                    "content-type": file.content_type,
                    "cache-control": settings.STORAGE_CACHE_CONTROL,
                    "upsert": "false",
                },
            )
            url = await self.public_url(path)
        except Exception as exc:
            logger.error(
                "attachment_upload_failed",
                extra={
                    "path": path,
                    "bucket": self.bucket,
                    "error_message": str(exc),
                },
            )
            raise UploadFailed(f"Upload failed: {exc}") from exc

        logger.info(
            "attachment_uploaded",
            extra={"path": path, "bucket": self.bucket, "size": file.size},
        )
        return AttachmentRef(url=url, path=path)

    def resolve_path(self, ref: AttachmentRef) -> str | None:
        """Return the storage path for *ref*, parsing the URL only as fallback."""
        if ref.path:
            return ref.path
        if ref.url:
            return path_from_public_url(ref.url, self.bucket)
        return None

    async def remove(self, ref: AttachmentRef) -> str:
        """Remove the blob behind *ref*.  Raises ``CleanupError`` on failure.

        Removing a path that no longer exists is not an error.
        """
        path = self.resolve_path(ref)
        if path is None:
            raise CleanupError(f"Cannot resolve storage path for {ref.url!r}")
        try:
            await self._bucket().remove([path])
        except Exception as exc:
            raise CleanupError(f"Storage remove failed for {path}: {exc}", path=path) from exc

        logger.info("attachment_deleted", extra={"path": path, "bucket": self.bucket})
        return path

    async def delete(self, ref: AttachmentRef | None) -> bool:
        """Best-effort removal.  Never raises; returns False on failure."""
        if ref is None:
            return True
        try:
            await self.remove(ref)
        except CleanupError as exc:
            logger.warning(
                "attachment_delete_failed",
                extra={
                    "path": exc.path or ref.path,
                    "url": ref.url,
                    "error_message": str(exc),
                },
            )
            return False
        return True

    async def download(self, ref: AttachmentRef) -> bytes:
        """Read the blob bytes through the storage API."""
        path = self.resolve_path(ref)
        if path is None:
            raise TransportError(f"Cannot resolve storage path for {ref.url!r}")
        try:
            return await self._bucket().download(path)
        except Exception as exc:
            raise TransportError(f"Download failed for {path}: {exc}") from exc

    async def fetch(self, ref: AttachmentRef) -> bytes:
        """Read the blob bytes from its public URL over HTTP."""
        url = ref.url
        if url is None:
            url = await self.public_url(ref.path)  # type: ignore[arg-type]
        try:
            if self._http is not None:
                response = await self._http.get(url)
            else:
                async with httpx.AsyncClient(
                    timeout=settings.PUBLIC_FETCH_TIMEOUT_SECONDS
                ) as http_client:
                    response = await http_client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransportError(f"Public fetch failed for {url}: {exc}") from exc
        return response.content

    # -- edit dispositions ---------------------------------------------------

    async def stage(
        self,
        disposition: AttachmentDisposition,
        current: AttachmentRef | None,
        owner_id: UUID,
    ) -> AttachmentRef | None:
        """Return the reference a row should carry after *disposition*.

        Uploads the new file for ``Replace``; touches nothing otherwise.
        """
        if isinstance(disposition, Keep):
            return current
        if isinstance(disposition, Remove):
            return None
        return await self.upload(disposition.file, owner_id)

    async def release_superseded(
        self,
        disposition: AttachmentDisposition,
        current: AttachmentRef | None,
    ) -> None:
        """Delete the prior blob once the row no longer references it."""
        if isinstance(disposition, Keep) or current is None:
            return
        await self.delete(current)
