"""Filesystem attachment store with an SQLite index."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

import aiosqlite

from parley.core.errors import AttachmentError
from parley.core.host import AttachmentService
from parley.models import StoredAttachment
from parley.utils.logging import get_logger

log = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS attachments (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    size INTEGER NOT NULL,
    location TEXT NOT NULL,
    context TEXT DEFAULT '',
    created_at TEXT NOT NULL
);
"""

_UNSAFE_NAME = re.compile(r"[^\w.\-]+")


class LocalAttachmentStore(AttachmentService):
    def __init__(self, root: Path, public_base_url: str = "") -> None:
        self._root = root
        self._db_path = root / "attachments.db"
        self._public_base_url = public_base_url.rstrip("/")
        self._db: aiosqlite.Connection | None = None

    async def start(self) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self._db_path))
        await self._db.executescript(_SCHEMA)
        await self._db.commit()

    async def stop(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def store(self, data: bytes, metadata: dict[str, Any]) -> StoredAttachment:
        """Write ``data`` under a fresh id and index it."""
        if self._db is None:
            raise AttachmentError("Attachment store is not started")

        attachment_id = uuid4().hex
        name = _UNSAFE_NAME.sub("_", metadata.get("name") or "attachment")
        location = f"{attachment_id}-{name}"
        try:
            (self._root / location).write_bytes(data)
        except OSError as e:
            raise AttachmentError(f"Failed to write attachment {name}: {e}") from e

        try:
            await self._db.execute(
                "INSERT INTO attachments (id, name, type, size, location, context, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    attachment_id,
                    name,
                    metadata.get("type", "application/octet-stream"),
                    len(data),
                    location,
                    metadata.get("context", ""),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error as e:
            # An unindexed file can never be resolved
            (self._root / location).unlink(missing_ok=True)
            raise AttachmentError(f"Failed to index attachment {name}: {e}") from e
        log.debug("attachment_stored", attachment_id=attachment_id, size=len(data))

        return StoredAttachment(
            id=attachment_id,
            name=name,
            type=metadata.get("type", "application/octet-stream"),
            size=len(data),
            location=location,
            channel=metadata.get("channel", {}),
        )

    async def get(self, attachment_id: str) -> StoredAttachment | None:
        if self._db is None:
            raise AttachmentError("Attachment store is not started")
        cursor = await self._db.execute(
            "SELECT id, name, type, size, location FROM attachments WHERE id = ?",
            (attachment_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return StoredAttachment(id=row[0], name=row[1], type=row[2], size=row[3], location=row[4])

    async def resolve_url(self, attachment_id: str) -> str:
        attachment = await self.get(attachment_id)
        if attachment is None:
            raise AttachmentError(f"Unknown attachment {attachment_id}")
        if self._public_base_url:
            return f"{self._public_base_url}/{attachment.location}"
        return (self._root / attachment.location).resolve().as_uri()
