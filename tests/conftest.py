"""Shared test fixtures.

Provides an in-memory async Supabase double (PostgREST tables with the
post -> comment cascade, one storage bucket, realtime channels, auth) plus
fixtures wiring the real repositories, store and synchronizer around it.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-key")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from postgrest.exceptions import APIError  # noqa: E402

from blogcore.models.attachment import CandidateFile  # noqa: E402
from blogcore.services.attachments import AttachmentStore  # noqa: E402
from blogcore.services.cleanup import CascadeCleanupCoordinator  # noqa: E402
from blogcore.services.comments import CommentRepository  # noqa: E402
from blogcore.services.identity import SupabaseIdentity  # noqa: E402
from blogcore.services.posts import PostRepository  # noqa: E402
from blogcore.services.previews import PreviewRegistry  # noqa: E402
from blogcore.sync.subscription import ThreadSubscription  # noqa: E402
from blogcore.sync.thread import ThreadSynchronizer  # noqa: E402

SUPABASE_URL = "https://test.supabase.co"
BUCKET = "blog-images"
USER_ID = UUID("11111111-1111-1111-1111-111111111111")

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def make_png(name: str = "photo.png", size: int | None = None) -> CandidateFile:
    """Return a PNG candidate file, padded to *size* bytes when given."""
    data = PNG_BYTES if size is None else PNG_BYTES + b"\x00" * (size - len(PNG_BYTES))
    return CandidateFile(filename=name, content_type="image/png", data=data)


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run until the loop is quiet."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# PostgREST double
# ---------------------------------------------------------------------------


class FakeQuery:
    """Fluent query builder mirroring the postgrest-py surface we use."""

    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self._db = db
        self._table = table
        self._op = "select"
        self._columns = "*"
        self._payload: dict[str, Any] | None = None
        self._filters: list[tuple[str, str]] = []
        self._order: tuple[str, bool] | None = None
        self._limit: int | None = None

    def select(self, columns: str = "*") -> "FakeQuery":
        self._columns = columns
        return self

    def insert(self, payload: dict[str, Any]) -> "FakeQuery":
        self._op, self._payload = "insert", payload
        return self

    def update(self, payload: dict[str, Any]) -> "FakeQuery":
        self._op, self._payload = "update", payload
        return self

    def delete(self) -> "FakeQuery":
        self._op = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append((column, str(value)))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._order = (column, desc)
        return self

    def limit(self, count: int) -> "FakeQuery":
        self._limit = count
        return self

    def _matches(self, row: dict[str, Any]) -> bool:
        return all(str(row.get(col)) == val for col, val in self._filters)

    def _project(self, row: dict[str, Any]) -> dict[str, Any]:
        if self._columns.strip() == "*":
            return dict(row)
        cols = [c.strip() for c in self._columns.split(",")]
        return {c: row.get(c) for c in cols}

    async def execute(self) -> SimpleNamespace:
        self._db.calls.append((self._table, self._op))
        failure = self._db.failures.get((self._table, self._op))
        if failure is not None:
            raise failure

        rows = self._db.tables.setdefault(self._table, [])
        if self._op == "insert":
            row = self._db.new_row(self._payload or {})
            rows.append(row)
            self._db.changed(self._table, row)
            return SimpleNamespace(data=[dict(row)])

        matched = [r for r in rows if self._matches(r)]
        if self._op == "update":
            for row in matched:
                row.update(self._payload or {})
                self._db.changed(self._table, row)
            return SimpleNamespace(data=[dict(r) for r in matched])
        if self._op == "delete":
            for row in matched:
                rows.remove(row)
                self._db.deleted(self._table, row)
            return SimpleNamespace(data=[dict(r) for r in matched])

        if self._order is not None:
            column, desc = self._order
            matched.sort(key=lambda r: r[column], reverse=desc)
        if self._limit is not None:
            matched = matched[: self._limit]
        return SimpleNamespace(data=[self._project(r) for r in matched])


# ---------------------------------------------------------------------------
# Storage double
# ---------------------------------------------------------------------------


class FakeBucket:
    def __init__(self, name: str) -> None:
        self.name = name
        self.objects: dict[str, bytes] = {}
        self.fail_upload = False
        self.fail_remove: set[str] = set()
        self.upload_calls: list[str] = []
        self.remove_calls: list[list[str]] = []

    async def upload(self, path: str, file: bytes, file_options: dict[str, str] | None = None) -> Any:
        self.upload_calls.append(path)
        if self.fail_upload:
            raise RuntimeError("storage unavailable")
        if path in self.objects:
            raise RuntimeError("The resource already exists")
        self.objects[path] = bytes(file)
        return SimpleNamespace(path=path, full_path=f"{self.name}/{path}")

    async def remove(self, paths: list[str]) -> list[dict[str, Any]]:
        self.remove_calls.append(list(paths))
        for path in paths:
            if path in self.fail_remove:
                raise RuntimeError(f"remove failed for {path}")
        removed = [{"name": p} for p in paths if self.objects.pop(p, None) is not None]
        return removed

    async def download(self, path: str) -> bytes:
        if path not in self.objects:
            raise RuntimeError("Object not found")
        return self.objects[path]

    async def get_public_url(self, path: str) -> str:
        return f"{SUPABASE_URL}/storage/v1/object/public/{self.name}/{path}"


class FakeStorage:
    def __init__(self) -> None:
        self.buckets: dict[str, FakeBucket] = {}

    def from_(self, name: str) -> FakeBucket:
        return self.buckets.setdefault(name, FakeBucket(name))


# ---------------------------------------------------------------------------
# Realtime / auth doubles
# ---------------------------------------------------------------------------


class FakeChannel:
    def __init__(self, name: str, fail_subscribe: bool = False) -> None:
        self.name = name
        self.bindings: list[dict[str, Any]] = []
        self.subscribed = False
        self.fail_subscribe = fail_subscribe

    def on_postgres_changes(
        self,
        event: str,
        callback: Callable[[dict[str, Any]], None],
        table: str = "*",
        schema: str = "public",
        filter: str | None = None,
    ) -> "FakeChannel":
        self.bindings.append(
            {"event": event, "callback": callback, "table": table, "filter": filter}
        )
        return self

    async def subscribe(self) -> "FakeChannel":
        if self.fail_subscribe:
            raise RuntimeError("join timed out")
        self.subscribed = True
        return self


class FakeAuth:
    def __init__(self, user_id: UUID | None) -> None:
        self.user_id = user_id

    async def get_user(self) -> Any:
        if self.user_id is None:
            return None
        return SimpleNamespace(user=SimpleNamespace(id=str(self.user_id)))


class FakeSupabase:
    """Async Supabase client double backed by dicts."""

    def __init__(self, user_id: UUID | None = USER_ID) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {"posts": [], "comments": []}
        self.storage = FakeStorage()
        self.auth = FakeAuth(user_id)
        self.channels: list[FakeChannel] = []
        self.removed_channels: list[FakeChannel] = []
        self.failures: dict[tuple[str, str], Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self.emit_on_write = False
        self.fail_subscribe = False
        self.remove_gate: asyncio.Event | None = None
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    # -- client surface ------------------------------------------------------

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def channel(self, name: str) -> FakeChannel:
        channel = FakeChannel(name, fail_subscribe=self.fail_subscribe)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel: FakeChannel) -> None:
        if self.remove_gate is not None:
            await self.remove_gate.wait()
        self.channels.remove(channel)
        self.removed_channels.append(channel)

    # -- helpers -------------------------------------------------------------

    @property
    def bucket(self) -> FakeBucket:
        return self.storage.from_(BUCKET)

    def fail(self, table: str, op: str, message: str = "boom", code: str = "XX000") -> None:
        self.failures[(table, op)] = APIError(
            {"message": message, "code": code, "hint": None, "details": None}
        )

    def new_row(self, payload: dict[str, Any]) -> dict[str, Any]:
        self._clock += timedelta(seconds=1)
        stamp = self._clock.isoformat()
        row = {"id": str(uuid4()), "created_at": stamp, "updated_at": stamp}
        row.update(payload)
        return row

    def changed(self, table: str, row: dict[str, Any]) -> None:
        if table == "comments" and self.emit_on_write:
            self.emit_comment_change(row["post_id"])

    def deleted(self, table: str, row: dict[str, Any]) -> None:
        if table == "posts":
            comments = self.tables.setdefault("comments", [])
            for child in [c for c in comments if c["post_id"] == row["id"]]:
                comments.remove(child)
                self.changed("comments", child)
        else:
            self.changed(table, row)

    def emit_comment_change(self, post_id: Any) -> int:
        """Deliver a change event to every open channel filtered on *post_id*."""
        delivered = 0
        for channel in list(self.channels):
            for binding in channel.bindings:
                if binding["filter"] == f"post_id=eq.{post_id}":
                    binding["callback"]({"eventType": "*", "new": {}, "old": {}})
                    delivered += 1
        return delivered

    def seed_post(self, author_id: UUID = USER_ID, image_path: str | None = None) -> dict[str, Any]:
        row = self.new_row({
            "title": "A post",
            "content": "Body",
            "author_id": str(author_id),
            "image_path": image_path,
            "image_url": self._url(image_path),
        })
        self.tables["posts"].append(row)
        if image_path:
            self.bucket.objects[image_path] = PNG_BYTES
        return row

    def seed_comment(
        self,
        post_id: Any,
        content: str = "hello",
        author_id: UUID = USER_ID,
        image_path: str | None = None,
        url_only: bool = False,
    ) -> dict[str, Any]:
        row = self.new_row({
            "post_id": str(post_id),
            "author_id": str(author_id),
            "content": content,
            "image_path": None if url_only else image_path,
            "image_url": self._url(image_path),
        })
        self.tables["comments"].append(row)
        if image_path:
            self.bucket.objects[image_path] = PNG_BYTES
        return row

    def _url(self, path: str | None) -> str | None:
        if path is None:
            return None
        return f"{SUPABASE_URL}/storage/v1/object/public/{BUCKET}/{path}"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture()
def store(fake_supabase: FakeSupabase) -> AttachmentStore:
    return AttachmentStore(fake_supabase, bucket=BUCKET)


@pytest.fixture()
def previews() -> PreviewRegistry:
    return PreviewRegistry()


@pytest.fixture()
def comment_repo(fake_supabase: FakeSupabase) -> CommentRepository:
    return CommentRepository(fake_supabase)


@pytest.fixture()
def post_repo(fake_supabase: FakeSupabase, store: AttachmentStore) -> PostRepository:
    return PostRepository(fake_supabase, store)


@pytest.fixture()
def coordinator(
    post_repo: PostRepository,
    comment_repo: CommentRepository,
    store: AttachmentStore,
) -> CascadeCleanupCoordinator:
    return CascadeCleanupCoordinator(post_repo, comment_repo, store)


@pytest.fixture()
def make_thread(
    fake_supabase: FakeSupabase,
    comment_repo: CommentRepository,
    store: AttachmentStore,
    previews: PreviewRegistry,
) -> Generator[Callable[..., ThreadSynchronizer], None, None]:
    """Factory for synchronizers over the fake; *comments* may be swapped."""
    created: list[ThreadSynchronizer] = []

    def factory(comments: Any = None) -> ThreadSynchronizer:
        def open_subscription(post_id: UUID, on_change: Any) -> ThreadSubscription:
            return ThreadSubscription(fake_supabase, post_id, on_change)

        thread = ThreadSynchronizer(
            comments or comment_repo,
            store,
            previews,
            SupabaseIdentity(fake_supabase),
            open_subscription,
        )
        created.append(thread)
        return thread

    yield factory

    # Release ownership claims left by tests that did not close
    from blogcore.sync.ownership import release_thread

    for thread in created:
        if thread.active_post_id is not None:
            release_thread(thread.active_post_id, id(thread))


@pytest.fixture()
def test_client(fake_supabase: FakeSupabase) -> Generator[TestClient, None, None]:
    """FastAPI TestClient whose runtime and health check use the fake."""
    supabase = AsyncMock(return_value=fake_supabase)
    with patch("blogcore.main.get_supabase", supabase), patch(
        "blogcore.routers.health.get_supabase", supabase
    ):
        from blogcore.main import app

        with TestClient(app) as client:
            yield client


@pytest.fixture()
def mock_supabase_disconnected() -> Generator[AsyncMock, None, None]:
    """Make the health check's client lookup fail."""
    failing = AsyncMock(side_effect=Exception("Connection refused"))
    with patch("blogcore.routers.health.get_supabase", failing):
        yield failing
