"""Post repository over the ``posts`` table.

Creating or editing a post goes through ``AttachmentStore`` for its image,
with the same Keep / Replace / Remove semantics as comment edits.
Deleting a post row cascades to its comments in the store; blob
reclamation is the job of ``CascadeCleanupCoordinator``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from blogcore.core.constants import POSTS_TABLE
from blogcore.core.errors import NotFound, TransportError
from blogcore.db.supabase import run_query
from blogcore.models.attachment import CandidateFile
from blogcore.models.edit import AttachmentDisposition, Keep
from blogcore.models.post import Post, PostCreate, PostUpdate
from blogcore.services.attachments import AttachmentStore

logger = logging.getLogger(__name__)


class PostRepository:
    """Reads and writes post rows."""

    def __init__(self, client: Any, store: AttachmentStore) -> None:
        self._client = client
        self._store = store

    def _table(self) -> Any:
        return self._client.table(POSTS_TABLE)

    async def get(self, post_id: UUID) -> Post:
        rows = await run_query(
            self._table().select("*").eq("id", str(post_id)).limit(1),
            "get_post",
            post_id=str(post_id),
        )
        if not rows:
            raise NotFound(f"Post not found: {post_id}")
        return Post(**rows[0])

    async def create(
        self,
        title: str,
        content: str,
        author_id: UUID,
        file: CandidateFile | None = None,
    ) -> Post:
        """Insert a post, uploading *file* first when given."""
        attachment = await self._store.upload(file, author_id) if file else None

        payload = PostCreate(
            title=title,
            content=content,
            author_id=author_id,
            image_url=attachment.url if attachment else None,
            image_path=attachment.path if attachment else None,
        )
        try:
            rows = await run_query(
                self._table().insert(payload.model_dump(mode="json")),
                "create_post",
            )
        except TransportError:
            await self._store.delete(attachment)
            raise

        post = Post(**rows[0])
        logger.info("post_created", extra={"post_id": str(post.id)})
        return post

    async def update(
        self,
        post_id: UUID,
        title: str,
        content: str,
        disposition: AttachmentDisposition | None = None,
    ) -> Post:
        """Edit title/content and apply the image *disposition*.

        The superseded blob is deleted only after the row stops
        referencing it.
        """
        disposition = disposition or Keep()
        current = await self.get(post_id)
        attachment = await self._store.stage(
            disposition, current.attachment, current.author_id
        )

        payload = PostUpdate(
            title=title,
            content=content,
            image_url=attachment.url if attachment else None,
            image_path=attachment.path if attachment else None,
            updated_at=datetime.now(timezone.utc),
        )
        try:
            rows = await run_query(
                self._table().update(payload.model_dump(mode="json")).eq("id", str(post_id)),
                "update_post",
                post_id=str(post_id),
            )
            if not rows:
                raise NotFound(f"Post not found or not editable: {post_id}")
        except TransportError:
            if attachment is not None and attachment != current.attachment:
                await self._store.delete(attachment)
            raise

        await self._store.release_superseded(disposition, current.attachment)
        logger.info("post_updated", extra={"post_id": str(post_id)})
        return Post(**rows[0])

    async def delete(self, post_id: UUID) -> UUID:
        """Delete the post row; the store cascades to its comments."""
        rows = await run_query(
            self._table().delete().eq("id", str(post_id)),
            "delete_post",
            post_id=str(post_id),
        )
        if not rows:
            raise NotFound(f"Post not found or not deletable: {post_id}")
        logger.info("post_deleted", extra={"post_id": str(post_id)})
        return post_id
