"""Pydantic models for the ``posts`` table."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from blogcore.models.attachment import AttachmentRef


class PostCreate(BaseModel):
    """Payload for inserting a new post."""
    title: str
    content: str
    author_id: UUID
    image_url: str | None = None
    image_path: str | None = None


class PostUpdate(BaseModel):
    """Payload for editing a post."""
    title: str
    content: str
    image_url: str | None = None
    image_path: str | None = None
    updated_at: datetime


class Post(BaseModel):
    """Full post record returned from the database."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    content: str
    author_id: UUID
    image_url: str | None = None
    image_path: str | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def attachment(self) -> AttachmentRef | None:
        return AttachmentRef.from_row(
            {"image_url": self.image_url, "image_path": self.image_path}
        )
