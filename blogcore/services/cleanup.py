"""Cascading blob cleanup on post deletion.

The store cascades comment rows when a post row is deleted, but it does not
reclaim storage objects.  Attachment references are only readable while the
rows exist, so the coordinator runs in this order:

1. Read the post's own attachment reference.
2. Read the attachment reference of every comment on the post.
3. Remove each blob, continuing past individual failures.
4. Delete the post row (comments go with it).

Blob failures are logged and reported, never raised.  Failing to read the
references aborts before anything is deleted, since deleting the row then
would orphan the blobs for good.
"""

from __future__ import annotations

import logging
import time
from uuid import UUID

from blogcore.core.errors import CleanupError
from blogcore.models.attachment import AttachmentRef
from blogcore.models.thread import CleanupReport
from blogcore.services.attachments import AttachmentStore
from blogcore.services.comments import CommentRepository
from blogcore.services.posts import PostRepository

logger = logging.getLogger(__name__)


class CascadeCleanupCoordinator:
    """Deletes a post together with every blob it and its comments reference."""

    def __init__(
        self,
        posts: PostRepository,
        comments: CommentRepository,
        store: AttachmentStore,
    ) -> None:
        self._posts = posts
        self._comments = comments
        self._store = store

    async def collect(self, post_id: UUID) -> tuple[int, list[AttachmentRef]]:
        """Return (comment count, refs) for the post and all its comments."""
        post = await self._posts.get(post_id)
        comment_count, refs = await self._comments.list_attachments(post_id)
        if post.attachment is not None:
            refs.insert(0, post.attachment)
        return comment_count, refs

    async def delete_post(self, post_id: UUID) -> CleanupReport:
        """Reclaim every blob of *post_id*, then delete the post row.

        Raises ``TransportError`` if the references cannot be read or the
        row delete fails; blob failures only show up in the report.
        """
        start_time = time.time()
        comment_count, refs = await self.collect(post_id)

        report = CleanupReport(
            post_id=post_id,
            blobs_attempted=len(refs),
            comments_scanned=comment_count,
        )

        for ref in refs:
            try:
                await self._store.remove(ref)
            except CleanupError as exc:
                report.blobs_failed.append(exc.path or ref.path or ref.url or "")
                logger.warning(
                    "cleanup_blob_failed",
                    extra={
                        "post_id": str(post_id),
                        "path": exc.path or ref.path,
                        "url": ref.url,
                        "error_message": str(exc),
                    },
                )

        await self._posts.delete(post_id)

        logger.info(
            "cleanup_complete",
            extra={
                "post_id": str(post_id),
                "comments_scanned": comment_count,
                "blobs_attempted": report.blobs_attempted,
                "blobs_failed": len(report.blobs_failed),
                "duration_ms": int((time.time() - start_time) * 1000),
            },
        )
        return report
