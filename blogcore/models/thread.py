"""View-state models exposed to presentation code."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from blogcore.models.comment import Comment
from blogcore.models.enums import ThreadStatus


class ThreadViewState(BaseModel):
    """Comment list for exactly one post, tagged with that post's id.

    Snapshots handed to listeners are frozen; the synchronizer builds a new
    one on every transition.
    """
    model_config = ConfigDict(frozen=True)

    post_id: UUID | None = None
    comments: tuple[Comment, ...] = ()
    status: ThreadStatus = ThreadStatus.idle
    error: str | None = None

    @property
    def loading(self) -> bool:
        return self.status == ThreadStatus.loading


class CleanupReport(BaseModel):
    """Outcome of a cascading post deletion."""
    post_id: UUID
    blobs_attempted: int = 0
    blobs_failed: list[str] = Field(default_factory=list)
    comments_scanned: int = 0
