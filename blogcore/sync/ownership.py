"""Single-owner registry for post threads.

At most one synchronizer may hold a given post id in this process.  Uses a
non-blocking claim: if the post is already held, the caller gets False.
"""

from __future__ import annotations

import threading
from uuid import UUID

_registry_lock = threading.Lock()
_claimed: dict[UUID, int] = {}


def claim_thread(post_id: UUID, owner: int) -> bool:
    """Try to claim *post_id* for *owner* (an ``id()`` of the synchronizer).

    Returns True if claimed (or already held by the same owner).
    """
    with _registry_lock:
        holder = _claimed.get(post_id)
        if holder is not None and holder != owner:
            return False
        _claimed[post_id] = owner
        return True


def release_thread(post_id: UUID, owner: int) -> None:
    """Release *post_id* if *owner* holds it.  Safe to call repeatedly."""
    with _registry_lock:
        if _claimed.get(post_id) == owner:
            del _claimed[post_id]


def is_thread_claimed(post_id: UUID) -> bool:
    return post_id in _claimed
