"""Thread synchronizer: the in-memory comment list for the viewed post.

Owns the authoritative ``ThreadViewState`` for exactly one post at a time.
Repository reads and realtime "something changed" signals both funnel into
``request_refresh``; only the most recently issued read for the currently
viewed post is ever committed.

Switching posts:

1. Clear the list and mark the thread idle, before anything else.
2. Claim the post and open one realtime subscription scoped to it.
3. Issue ``list(post_id)`` tagged with (post_id, request sequence).
4. On the next switch or ``close()``: cancel the in-flight read, close the
   subscription, revoke held previews and drop any edit session.

A read that completes after step 4 (the transport may not honour the
cancel in time) fails the tag check and is dropped.  Superseded reads never
populate ``error``; other failures do, leaving the last good list visible.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol
from uuid import UUID

from blogcore.core.errors import (
    CancellationError,
    EditSessionError,
    EmptySubmission,
    NoActiveThread,
    ThreadBusy,
    TransportError,
)
from blogcore.models.attachment import CandidateFile
from blogcore.models.comment import Comment
from blogcore.models.edit import EditSessionState
from blogcore.models.enums import ThreadStatus
from blogcore.models.thread import ThreadViewState
from blogcore.services.attachments import AttachmentStore, validate_image
from blogcore.services.comments import CommentRepository
from blogcore.services.previews import PreviewRegistry
from blogcore.sync.compose import CommentComposer
from blogcore.sync.edit import CommentEditSession
from blogcore.sync.ownership import claim_thread, release_thread
from blogcore.sync.subscription import ThreadSubscription

logger = logging.getLogger(__name__)

StateListener = Callable[[ThreadViewState], None]
SubscriptionFactory = Callable[[UUID, Callable[[UUID], None]], ThreadSubscription]


class IdentityProvider(Protocol):
    async def current_user_id(self) -> UUID: ...


class ThreadSynchronizer:
    """Keeps one post's comment list consistent with the remote store."""

    def __init__(
        self,
        comments: CommentRepository,
        store: AttachmentStore,
        previews: PreviewRegistry,
        identity: IdentityProvider,
        subscription_factory: SubscriptionFactory,
    ) -> None:
        self._comments = comments
        self._store = store
        self._previews = previews
        self._identity = identity
        self._subscription_factory = subscription_factory

        self._state = ThreadViewState()
        self._listeners: list[StateListener] = []
        self._subscription: ThreadSubscription | None = None
        self._inflight: asyncio.Task[Any] | None = None
        self._request_seq = 0
        self._tasks: set[asyncio.Task[Any]] = set()
        self._switch_lock = asyncio.Lock()
        self._edit: CommentEditSession | None = None
        self.composer = CommentComposer(previews)

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> ThreadViewState:
        return self._state

    @property
    def active_post_id(self) -> UUID | None:
        return self._state.post_id

    @property
    def edit_session(self) -> CommentEditSession | None:
        return self._edit

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener*, call it with the current state, return an unsubscriber."""
        self._listeners.append(listener)
        listener(self._state)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, **changes: Any) -> None:
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("thread_listener_failed")

    def _require_active(self) -> UUID:
        post_id = self._state.post_id
        if post_id is None:
            raise NoActiveThread("No post is being viewed")
        return post_id

    def _report_failure(self, post_id: UUID, operation: str, exc: Exception) -> None:
        logger.error(
            "thread_operation_failed",
            extra={
                "post_id": str(post_id),
                "operation": operation,
                "error_message": str(exc),
            },
        )
        if self._state.post_id == post_id:
            self._set_state(error=str(exc))

    # ------------------------------------------------------------------
    # View lifecycle
    # ------------------------------------------------------------------

    async def switch_to(self, post_id: UUID) -> None:
        """Make *post_id* the viewed thread.  Re-selecting it just refreshes.

        Switches and closes run one at a time, in call order, so the last
        requested post is the one left open.  Raises ``ThreadBusy`` if
        another synchronizer owns *post_id*.
        """
        async with self._switch_lock:
            if post_id == self._state.post_id:
                self.request_refresh()
                return

            await self._teardown()
            if not claim_thread(post_id, id(self)):
                raise ThreadBusy(f"Thread for post {post_id} is already open")

            self._set_state(post_id=post_id, comments=(), status=ThreadStatus.idle, error=None)
            logger.info("thread_switched", extra={"post_id": str(post_id)})

            subscription = self._subscription_factory(post_id, self._on_remote_change)
            try:
                await subscription.open()
            except Exception as exc:
                logger.warning(
                    "thread_subscription_failed",
                    extra={"post_id": str(post_id), "error_message": str(exc)},
                )
            self._subscription = subscription

            self.request_refresh()

    async def close(self) -> None:
        """Unmount: tear everything down and go back to an empty idle state."""
        async with self._switch_lock:
            await self._teardown()

    async def _teardown(self) -> None:
        post_id = self._state.post_id
        self._request_seq += 1
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None

        self._set_state(post_id=None, comments=(), status=ThreadStatus.idle, error=None)

        if self._edit is not None:
            self._edit.cancel()
            self._edit = None
        self.composer.clear_image()

        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.close()
        if post_id is not None:
            release_thread(post_id, id(self))
            logger.info("thread_closed", extra={"post_id": str(post_id)})

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def request_refresh(self) -> asyncio.Task[Any] | None:
        """Start a fresh read, superseding any read still in flight."""
        post_id = self._state.post_id
        if post_id is None:
            return None

        self._request_seq += 1
        seq = self._request_seq
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

        self._set_state(status=ThreadStatus.loading, error=None)
        task = asyncio.get_running_loop().create_task(self._load(post_id, seq))
        self._inflight = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def refresh(self) -> None:
        """Re-read the viewed thread and wait for the outcome."""
        task = self.request_refresh()
        if task is None:
            raise NoActiveThread("No post is being viewed")
        await asyncio.wait({task})

    def _ensure_current(self, post_id: UUID, seq: int) -> None:
        if self._state.post_id != post_id or self._request_seq != seq:
            raise CancellationError(f"Read {seq} for post {post_id} was superseded")

    async def _load(self, post_id: UUID, seq: int) -> None:
        try:
            comments = await self._comments.list(post_id)
            self._ensure_current(post_id, seq)
        except asyncio.CancelledError:
            logger.debug("thread_load_cancelled", extra={"post_id": str(post_id), "seq": seq})
            raise
        except CancellationError:
            logger.debug("thread_load_stale", extra={"post_id": str(post_id), "seq": seq})
            return
        except TransportError as exc:
            if self._state.post_id != post_id or self._request_seq != seq:
                logger.debug("thread_load_stale", extra={"post_id": str(post_id), "seq": seq})
                return
            logger.warning(
                "thread_load_failed",
                extra={"post_id": str(post_id), "error_message": str(exc)},
            )
            self._set_state(status=ThreadStatus.failed, error=str(exc))
            return
        except Exception as exc:
            if self._state.post_id != post_id or self._request_seq != seq:
                logger.debug("thread_load_stale", extra={"post_id": str(post_id), "seq": seq})
                return
            # Malformed rows and other unexpected failures
            logger.exception("thread_load_error", extra={"post_id": str(post_id)})
            self._set_state(status=ThreadStatus.failed, error=str(exc))
            return

        self._set_state(comments=tuple(comments), status=ThreadStatus.ready, error=None)
        logger.debug(
            "thread_loaded",
            extra={"post_id": str(post_id), "seq": seq, "count": len(comments)},
        )

    def _on_remote_change(self, post_id: UUID) -> None:
        if post_id != self._state.post_id:
            logger.debug("thread_event_stale", extra={"post_id": str(post_id)})
            return
        self.request_refresh()

    def _find(self, comment_id: UUID) -> Comment | None:
        for comment in self._state.comments:
            if comment.id == comment_id:
                return comment
        return None

    # ------------------------------------------------------------------
    # New comments
    # ------------------------------------------------------------------

    def select_image(self, file: CandidateFile) -> str:
        return self.composer.select_image(file)

    def clear_image(self) -> None:
        self.composer.clear_image()

    async def post(self, content: str, file: CandidateFile | None = None) -> Comment:
        """Create a comment on the viewed post.

        Uses the composer's picked image when *file* is not given.  Empty
        text is fine as long as there is an image.
        """
        post_id = self._require_active()
        if file is None:
            file = self.composer.file
        if not content.strip() and file is None:
            raise EmptySubmission("Comment is empty")
        if file is not None:
            validate_image(file)

        self._set_state(error=None)
        attachment = None
        try:
            author_id = await self._identity.current_user_id()
            if file is not None:
                attachment = await self._store.upload(file, author_id)
            comment = await self._comments.create(post_id, author_id, content, attachment)
        except TransportError as exc:
            await self._store.delete(attachment)
            self._report_failure(post_id, "post_comment", exc)
            raise

        if self._state.post_id != post_id:
            logger.debug("thread_post_result_stale", extra={"post_id": str(post_id)})
            return comment

        if self._find(comment.id) is None:
            self._set_state(comments=self._state.comments + (comment,))
        self.composer.clear_image()
        return comment

    async def remove(self, comment_id: UUID) -> UUID:
        """Delete a comment row, then its blob best-effort."""
        post_id = self._require_active()
        target = self._find(comment_id)

        self._set_state(error=None)
        try:
            if target is None:
                target = await self._comments.get(comment_id)
            await self._comments.delete(comment_id)
        except TransportError as exc:
            self._report_failure(post_id, "remove_comment", exc)
            raise

        if self._edit is not None and self._edit.comment_id == comment_id:
            self._edit.cancel()
            self._edit = None
        await self._store.delete(target.attachment)

        if self._state.post_id == post_id:
            self._set_state(
                comments=tuple(c for c in self._state.comments if c.id != comment_id)
            )
        return comment_id

    # ------------------------------------------------------------------
    # Inline edit
    # ------------------------------------------------------------------

    def _require_edit(self) -> CommentEditSession:
        if self._edit is None:
            raise EditSessionError("No comment is being edited")
        return self._edit

    def start_edit(self, comment_id: UUID) -> EditSessionState:
        """Open an edit session, replacing any other one."""
        self._require_active()
        comment = self._find(comment_id)
        if comment is None:
            raise EditSessionError(f"Comment {comment_id} is not in the current thread")
        if self._edit is not None:
            self._edit.cancel()
        self._edit = CommentEditSession(comment, self._previews)
        return self._edit.snapshot()

    def cancel_edit(self) -> None:
        if self._edit is None:
            return
        self._edit.cancel()
        self._edit = None

    def set_edit_text(self, text: str) -> EditSessionState:
        session = self._require_edit()
        session.set_text(text)
        return session.snapshot()

    def select_edit_image(self, file: CandidateFile) -> EditSessionState:
        session = self._require_edit()
        session.select_image(file)
        return session.snapshot()

    def remove_edit_image(self) -> EditSessionState:
        session = self._require_edit()
        session.remove_image()
        return session.snapshot()

    async def save_edit(self) -> Comment:
        """Persist the live edit and replace the comment in place.

        On a transport failure the session stays open with its draft.
        """
        session = self._require_edit()
        post_id = self._require_active()

        self._set_state(error=None)
        try:
            updated = await session.save(self._comments, self._store)
        except TransportError as exc:
            self._report_failure(post_id, "save_edit", exc)
            raise

        if self._edit is session:
            self._edit = None
        if self._state.post_id == post_id:
            self._set_state(
                comments=tuple(
                    updated if c.id == updated.id else c for c in self._state.comments
                )
            )
        return updated
