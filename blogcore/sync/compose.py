"""Draft image for the new-comment form."""

from __future__ import annotations

from blogcore.models.attachment import CandidateFile
from blogcore.services.attachments import validate_image
from blogcore.services.previews import PreviewRegistry


class CommentComposer:
    """Holds at most one picked file and its preview handle."""

    def __init__(self, previews: PreviewRegistry) -> None:
        self._previews = previews
        self.file: CandidateFile | None = None
        self.preview_handle: str | None = None

    def select_image(self, file: CandidateFile) -> str:
        """Validate *file*, swap it in and return its new preview handle."""
        validate_image(file)
        self.clear_image()
        self.file = file
        self.preview_handle = self._previews.create(file)
        return self.preview_handle

    def clear_image(self) -> None:
        if self.preview_handle is not None:
            self._previews.revoke(self.preview_handle)
        self.file = None
        self.preview_handle = None
