"""Local, memory-only previews for files that are not uploaded yet.

Each handle owns a reference to the picked file's bytes until it is
revoked.  Owners must revoke the previous handle in the same transition
that creates its replacement.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from blogcore.models.attachment import CandidateFile

logger = logging.getLogger(__name__)

PREVIEW_SCHEME = "preview:"


class PreviewRegistry:
    """Issues and revokes preview handles."""

    def __init__(self) -> None:
        self._live: dict[str, CandidateFile] = {}

    def create(self, file: CandidateFile) -> str:
        handle = f"{PREVIEW_SCHEME}{uuid4().hex}"
        self._live[handle] = file
        logger.debug("preview_created", extra={"handle": handle, "size": file.size})
        return handle

    def get(self, handle: str) -> CandidateFile:
        """Return the file behind a live handle.  Raises ``KeyError`` once revoked."""
        return self._live[handle]

    def revoke(self, handle: str) -> bool:
        """Free *handle*.  Returns False (and logs) if it was not live."""
        if self._live.pop(handle, None) is None:
            logger.warning("preview_revoke_unknown", extra={"handle": handle})
            return False
        logger.debug("preview_revoked", extra={"handle": handle})
        return True

    def is_live(self, handle: str) -> bool:
        return handle in self._live

    @property
    def live_count(self) -> int:
        return len(self._live)
