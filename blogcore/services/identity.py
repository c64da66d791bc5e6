"""Current-user lookup from the Supabase auth session.

The id is only forwarded to the store; row-level security does the
authorization.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from blogcore.core.errors import TransportError

logger = logging.getLogger(__name__)


class SupabaseIdentity:
    """Reads the signed-in user from ``client.auth``."""

    def __init__(self, client: Any) -> None:
        self._client = client

    async def current_user_id(self) -> UUID:
        try:
            response = await self._client.auth.get_user()
        except Exception as exc:
            logger.warning("identity_lookup_failed", extra={"error_message": str(exc)})
            raise TransportError(f"Could not read auth session: {exc}") from exc
        if response is None or response.user is None:
            raise TransportError("Log in required")
        return UUID(str(response.user.id))
