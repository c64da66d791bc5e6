"""Object graph for one running client.

Exactly one ``ThreadSynchronizer`` exists per runtime, which is what keeps
a post's comment list single-owner inside the process.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

import httpx

from blogcore.core.config import settings
from blogcore.services.attachments import AttachmentStore
from blogcore.services.cleanup import CascadeCleanupCoordinator
from blogcore.services.comments import CommentRepository
from blogcore.services.identity import SupabaseIdentity
from blogcore.services.posts import PostRepository
from blogcore.services.previews import PreviewRegistry
from blogcore.sync.subscription import ThreadSubscription
from blogcore.sync.thread import ThreadSynchronizer


@dataclass
class Runtime:
    store: AttachmentStore
    previews: PreviewRegistry
    comments: CommentRepository
    posts: PostRepository
    identity: SupabaseIdentity
    thread: ThreadSynchronizer
    cleanup: CascadeCleanupCoordinator
    http_client: httpx.AsyncClient

    async def aclose(self) -> None:
        await self.thread.close()
        await self.http_client.aclose()


def build_runtime(client: Any) -> Runtime:
    """Wire repositories, store and synchronizer around a Supabase *client*."""
    http_client = httpx.AsyncClient(timeout=settings.PUBLIC_FETCH_TIMEOUT_SECONDS)
    store = AttachmentStore(client, http_client=http_client)
    previews = PreviewRegistry()
    comments = CommentRepository(client)
    posts = PostRepository(client, store)
    identity = SupabaseIdentity(client)

    def open_subscription(post_id: UUID, on_change: Any) -> ThreadSubscription:
        return ThreadSubscription(client, post_id, on_change)

    thread = ThreadSynchronizer(comments, store, previews, identity, open_subscription)
    return Runtime(
        store=store,
        previews=previews,
        comments=comments,
        posts=posts,
        identity=identity,
        thread=thread,
        cleanup=CascadeCleanupCoordinator(posts, comments, store),
        http_client=http_client,
    )
