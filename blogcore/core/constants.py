"""Application constants.

Attachment limits, table names and realtime channel naming.
"""

# ---------------------------------------------------------------------------
# Attachment limits
# ---------------------------------------------------------------------------
MAX_IMAGE_BYTES: int = 5 * 1024 * 1024

ALLOWED_IMAGE_TYPES: frozenset[str] = frozenset({
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
})

# Used when the uploaded filename carries no usable extension
IMAGE_EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

# ---------------------------------------------------------------------------
# Backing store
# ---------------------------------------------------------------------------
POSTS_TABLE: str = "posts"
COMMENTS_TABLE: str = "comments"

# Segment that precedes the bucket name in a Supabase public object URL:
# {SUPABASE_URL}/storage/v1/object/public/{bucket}/{path}
PUBLIC_OBJECT_MARKER: tuple[str, str] = ("object", "public")

# ---------------------------------------------------------------------------
# Realtime
# ---------------------------------------------------------------------------
REALTIME_SCHEMA: str = "public"
COMMENT_CHANNEL_PREFIX: str = "comments-"
