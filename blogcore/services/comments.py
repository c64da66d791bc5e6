"""Comment repository over the ``comments`` table.

Thin CRUD plus the ordered list query for one parent post.  Every call
raises ``StoreError`` with the backing store's message on failure; retry
policy belongs to callers.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from blogcore.core.constants import COMMENTS_TABLE
from blogcore.core.errors import NotFound
from blogcore.db.supabase import run_query
from blogcore.models.attachment import AttachmentRef
from blogcore.models.comment import Comment, CommentCreate, CommentUpdate

logger = logging.getLogger(__name__)


class CommentRepository:
    """Reads and writes comment rows."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def _table(self) -> Any:
        return self._client.table(COMMENTS_TABLE)

    async def list(self, post_id: UUID) -> list[Comment]:
        """Return the comments of *post_id*, oldest first."""
        rows = await run_query(
            self._table()
            .select("*")
            .eq("post_id", str(post_id))
            .order("created_at", desc=False),
            "list_comments",
            post_id=str(post_id),
        )
        return [Comment(**row) for row in rows]

    async def get(self, comment_id: UUID) -> Comment:
        rows = await run_query(
            self._table().select("*").eq("id", str(comment_id)).limit(1),
            "get_comment",
            comment_id=str(comment_id),
        )
        if not rows:
            raise NotFound(f"Comment not found: {comment_id}")
        return Comment(**rows[0])

    async def create(
        self,
        post_id: UUID,
        author_id: UUID,
        content: str,
        attachment: AttachmentRef | None = None,
    ) -> Comment:
        payload = CommentCreate(
            post_id=post_id,
            author_id=author_id,
            content=content,
            image_url=attachment.url if attachment else None,
            image_path=attachment.path if attachment else None,
        )
        rows = await run_query(
            self._table().insert(payload.model_dump(mode="json")),
            "create_comment",
            post_id=str(post_id),
        )
        comment = Comment(**rows[0])
        logger.info(
            "comment_created",
            extra={"comment_id": str(comment.id), "post_id": str(post_id)},
        )
        return comment

    async def update(
        self,
        comment_id: UUID,
        content: str,
        attachment: AttachmentRef | None = None,
    ) -> Comment:
        """Overwrite content and attachment, stamping ``updated_at``.

        Raises ``NotFound`` when no row was updated (missing, or not owned
        by the current user under row-level security).
        """
        payload = CommentUpdate(
            content=content,
            image_url=attachment.url if attachment else None,
            image_path=attachment.path if attachment else None,
            updated_at=datetime.now(timezone.utc),
        )
        rows = await run_query(
            self._table()
            .update(payload.model_dump(mode="json"))
            .eq("id", str(comment_id)),
            "update_comment",
            comment_id=str(comment_id),
        )
        if not rows:
            raise NotFound(f"Comment not found or not editable: {comment_id}")
        logger.info("comment_updated", extra={"comment_id": str(comment_id)})
        return Comment(**rows[0])

    async def delete(self, comment_id: UUID) -> UUID:
        rows = await run_query(
            self._table().delete().eq("id", str(comment_id)),
            "delete_comment",
            comment_id=str(comment_id),
        )
        if not rows:
            raise NotFound(f"Comment not found or not deletable: {comment_id}")
        logger.info("comment_deleted", extra={"comment_id": str(comment_id)})
        return comment_id

    async def list_attachments(self, post_id: UUID) -> tuple[int, list[AttachmentRef]]:
        """Return (comment count, attachment refs) for every comment of *post_id*."""
        rows = await run_query(
            self._table()
            .select("id, image_url, image_path")
            .eq("post_id", str(post_id)),
            "list_comment_attachments",
            post_id=str(post_id),
        )
        refs = [ref for ref in (AttachmentRef.from_row(row) for row in rows) if ref]
        return len(rows), refs
