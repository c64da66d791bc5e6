"""Inline edit session for one comment.

Viewing -> Editing -> Saving -> Viewing, or back to Editing when the save
fails so the draft survives.  Cancel discards the draft without touching
storage.  The image disposition starts as ``Keep``; picking a file always
moves it to ``Replace``, clearing the image moves it to ``Remove``.
"""

from __future__ import annotations

import logging
from uuid import UUID

from blogcore.core.errors import EditSessionError, EmptySubmission, TransportError
from blogcore.models.attachment import CandidateFile
from blogcore.models.comment import Comment
from blogcore.models.edit import AttachmentDisposition, EditSessionState, Keep, Remove, Replace
from blogcore.models.enums import EditPhase
from blogcore.services.attachments import AttachmentStore, validate_image
from blogcore.services.comments import CommentRepository
from blogcore.services.previews import PreviewRegistry

logger = logging.getLogger(__name__)


class CommentEditSession:
    """Draft state for editing ``comment`` in place."""

    def __init__(self, comment: Comment, previews: PreviewRegistry) -> None:
        self.comment = comment
        self._previews = previews
        self.phase = EditPhase.editing
        self.draft_text = comment.content
        self.disposition: AttachmentDisposition = Keep()
        self.preview_handle: str | None = None

    @property
    def comment_id(self) -> UUID:
        return self.comment.id

    def snapshot(self) -> EditSessionState:
        return EditSessionState(
            comment_id=self.comment.id,
            phase=self.phase,
            draft_text=self.draft_text,
            disposition=self.disposition,
            original=self.comment.attachment,
            preview_handle=self.preview_handle,
        )

    def _require_editing(self) -> None:
        if self.phase != EditPhase.editing:
            raise EditSessionError(
                f"Comment {self.comment.id} is not being edited (phase={self.phase.value})"
            )

    def _release_preview(self) -> None:
        if self.preview_handle is not None:
            self._previews.revoke(self.preview_handle)
            self.preview_handle = None

    # -- draft mutations -----------------------------------------------------

    def set_text(self, text: str) -> None:
        self._require_editing()
        self.draft_text = text

    def select_image(self, file: CandidateFile) -> str:
        """Replace the draft image with *file* and return its preview handle."""
        self._require_editing()
        validate_image(file)
        self._release_preview()
        self.preview_handle = self._previews.create(file)
        self.disposition = Replace(file=file)
        return self.preview_handle

    def remove_image(self) -> None:
        self._require_editing()
        self._release_preview()
        self.disposition = Remove()

    def has_attachment_after_save(self) -> bool:
        if isinstance(self.disposition, Replace):
            return True
        if isinstance(self.disposition, Remove):
            return False
        return self.comment.attachment is not None

    def cancel(self) -> None:
        """Discard the draft.  No upload or delete happens."""
        self._release_preview()
        self.phase = EditPhase.viewing
        logger.debug("comment_edit_cancelled", extra={"comment_id": str(self.comment.id)})

    # -- save ----------------------------------------------------------------

    async def save(self, comments: CommentRepository, store: AttachmentStore) -> Comment:
        """Persist the draft and return the updated comment.

        The prior blob is deleted only after the row update succeeds; a
        freshly uploaded blob is deleted again if the update fails.
        """
        self._require_editing()
        if not self.draft_text.strip() and not self.has_attachment_after_save():
            raise EmptySubmission("Comment cannot be empty")

        self.phase = EditPhase.saving
        current = self.comment.attachment
        disposition = self.disposition
        try:
            attachment = await store.stage(disposition, current, self.comment.author_id)
        except TransportError:
            self.phase = EditPhase.editing
            raise

        try:
            updated = await comments.update(self.comment.id, self.draft_text, attachment)
        except TransportError:
            if isinstance(disposition, Replace):
                await store.delete(attachment)
            self.phase = EditPhase.editing
            raise

        await store.release_superseded(disposition, current)
        self._release_preview()
        self.comment = updated
        self.phase = EditPhase.viewing
        logger.info(
            "comment_edit_saved",
            extra={"comment_id": str(updated.id), "disposition": disposition.kind},
        )
        return updated
