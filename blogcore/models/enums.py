"""Enum types for thread and edit-session state machines."""

from enum import Enum


class ThreadStatus(str, Enum):
    """Lifecycle of the comment list for the viewed post."""
    idle = "idle"
    loading = "loading"
    ready = "ready"
    failed = "failed"


class EditPhase(str, Enum):
    """Inline edit state of a single comment."""
    viewing = "viewing"
    editing = "editing"
    saving = "saving"
