"""Realtime subscription scoped to one post's comments.

An owned handle with an explicit open/close lifecycle.  Events are treated
as "something changed" signals; the payload is never trusted, the owner
re-reads instead.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any
from uuid import UUID

from blogcore.core.constants import (
    COMMENT_CHANNEL_PREFIX,
    COMMENTS_TABLE,
    REALTIME_SCHEMA,
)

logger = logging.getLogger(__name__)


class ThreadSubscription:
    """Postgres-changes channel filtered on ``post_id``."""

    def __init__(
        self,
        client: Any,
        post_id: UUID,
        on_change: Callable[[UUID], None],
    ) -> None:
        self._client = client
        self.post_id = post_id
        self._on_change = on_change
        self._channel: Any = None

    @property
    def is_open(self) -> bool:
        return self._channel is not None

    @property
    def channel_name(self) -> str:
        return f"{COMMENT_CHANNEL_PREFIX}{self.post_id}"

    async def open(self) -> None:
        if self._channel is not None:
            return
        channel = self._client.channel(self.channel_name)
        channel.on_postgres_changes(
            "*",
            schema=REALTIME_SCHEMA,
            table=COMMENTS_TABLE,
            filter=f"post_id=eq.{self.post_id}",
            callback=self._handle,
        )
        try:
            await channel.subscribe()
        except Exception:
            # The client registered the channel already
            try:
                await self._client.remove_channel(channel)
            except Exception as exc:
                logger.warning(
                    "thread_subscription_close_failed",
                    extra={"post_id": str(self.post_id), "error_message": str(exc)},
                )
            raise
        self._channel = channel
        logger.info(
            "thread_subscription_opened",
            extra={"post_id": str(self.post_id), "channel": self.channel_name},
        )

    async def close(self) -> None:
        channel, self._channel = self._channel, None
        if channel is None:
            return
        try:
            await self._client.remove_channel(channel)
        except Exception as exc:
            logger.warning(
                "thread_subscription_close_failed",
                extra={"post_id": str(self.post_id), "error_message": str(exc)},
            )
            return
        logger.info("thread_subscription_closed", extra={"post_id": str(self.post_id)})

    def _handle(self, payload: Any) -> None:
        if self._channel is None:
            logger.debug("thread_event_after_close", extra={"post_id": str(self.post_id)})
            return
        self._on_change(self.post_id)
