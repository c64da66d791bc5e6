"""Error taxonomy for the thread core.

``ValidationError`` is raised before any network call and is never retried.
``TransportError`` wraps backing-store and storage failures.
``CancellationError`` marks superseded work and is never shown to users.
``CleanupError`` is raised by blob removal and absorbed by its callers.
"""

from __future__ import annotations


class BlogCoreError(Exception):
    """Base class for every error raised by ``blogcore``."""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class ValidationError(BlogCoreError):
    """Bad user input, caught before any network call."""


class InvalidType(ValidationError):
    """Attachment MIME type is not an accepted image type."""


class TooLarge(ValidationError):
    """Attachment exceeds the size ceiling."""


class EmptySubmission(ValidationError):
    """Comment would have neither text nor an attachment."""


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class TransportError(BlogCoreError):
    """Network or backing-store failure."""


class StoreError(TransportError):
    """Relational store rejected or failed a call."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class NotFound(StoreError):
    """Target row does not exist or is not visible to the current user."""


class UploadFailed(TransportError):
    """Blob upload did not complete; nothing may be assumed stored."""


# ---------------------------------------------------------------------------
# Cancellation / cleanup
# ---------------------------------------------------------------------------

class CancellationError(BlogCoreError):
    """Result superseded by a newer request or a view change."""


class CleanupError(BlogCoreError):
    """A blob could not be removed from storage."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


# ---------------------------------------------------------------------------
# Thread lifecycle
# ---------------------------------------------------------------------------

class ThreadBusy(BlogCoreError):
    """Another synchronizer already owns the requested post thread."""


class NoActiveThread(BlogCoreError):
    """A thread operation was issued while no post is being viewed."""


class EditSessionError(BlogCoreError):
    """Edit operation without a matching live edit session."""
