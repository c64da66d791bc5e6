"""Edit-session models.

The image disposition is a tagged variant so that "explicitly removed" and
"never had an image" cannot be confused.
"""

from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from blogcore.models.attachment import AttachmentRef, CandidateFile
from blogcore.models.enums import EditPhase


class Keep(BaseModel):
    """Persist the existing reference unchanged."""
    model_config = ConfigDict(frozen=True)
    kind: Literal["keep"] = "keep"


class Replace(BaseModel):
    """Upload ``file`` and drop the prior blob."""
    model_config = ConfigDict(frozen=True)
    kind: Literal["replace"] = "replace"
    file: CandidateFile


class Remove(BaseModel):
    """Persist no reference and drop the prior blob."""
    model_config = ConfigDict(frozen=True)
    kind: Literal["remove"] = "remove"


AttachmentDisposition = Annotated[
    Union[Keep, Replace, Remove],
    Field(discriminator="kind"),
]


class EditSessionState(BaseModel):
    """Snapshot of the live inline edit, never persisted."""
    model_config = ConfigDict(frozen=True)

    comment_id: UUID
    phase: EditPhase = EditPhase.editing
    draft_text: str = ""
    disposition: AttachmentDisposition = Field(default_factory=Keep)
    original: AttachmentRef | None = None
    preview_handle: str | None = None
