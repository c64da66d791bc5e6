"""Pydantic models for the ``comments`` table."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from blogcore.models.attachment import AttachmentRef


class CommentCreate(BaseModel):
    """Payload for inserting a new comment."""
    post_id: UUID
    author_id: UUID
    content: str = ""
    image_url: str | None = None
    image_path: str | None = None


class CommentUpdate(BaseModel):
    """Payload for editing a comment; always stamps ``updated_at``."""
    content: str
    image_url: str | None = None
    image_path: str | None = None
    updated_at: datetime


class Comment(BaseModel):
    """Full comment record returned from the database."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    post_id: UUID
    author_id: UUID
    content: str = ""
    image_url: str | None = None
    image_path: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @property
    def attachment(self) -> AttachmentRef | None:
        return AttachmentRef.from_row(
            {"image_url": self.image_url, "image_path": self.image_path}
        )

    @property
    def is_edited(self) -> bool:
        """True once the comment was edited after creation."""
        return self.updated_at is not None and self.updated_at != self.created_at
