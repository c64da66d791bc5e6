"""Pydantic models for image attachments.

``AttachmentRef`` identifies one uploaded blob.  The storage path is the
deletion key; rows written before paths were recorded carry only the URL.
"""

from pydantic import BaseModel, ConfigDict, model_validator


class AttachmentRef(BaseModel):
    """Identifying pair for one uploaded blob."""
    model_config = ConfigDict(frozen=True)

    url: str | None = None
    path: str | None = None

    @model_validator(mode="after")
    def _require_locator(self) -> "AttachmentRef":
        if not self.url and not self.path:
            raise ValueError("AttachmentRef needs a url or a path")
        return self

    @classmethod
    def from_row(cls, row: dict) -> "AttachmentRef | None":
        """Build a reference from ``image_url`` / ``image_path`` columns."""
        url = row.get("image_url") or None
        path = row.get("image_path") or None
        if url is None and path is None:
            return None
        return cls(url=url, path=path)


class CandidateFile(BaseModel):
    """A local file the user picked, not yet uploaded."""
    model_config = ConfigDict(frozen=True)

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)
