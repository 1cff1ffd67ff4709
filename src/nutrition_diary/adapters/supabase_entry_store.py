"""Supabase-backed entry store.

Documents live in a single table keyed by path (see
`supabase/migrations/0001_documents.sql`). Merge-writes and batches run
through SQL functions so each is applied atomically by Postgres.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from nutrition_diary.adapters.change_feed import ChangeFeed
from nutrition_diary.errors import StoreUnavailable
from nutrition_diary.services.store import (
    DELETE,
    SERVER_TIMESTAMP,
    Document,
    EntryStore,
    StoreWatch,
    WriteOp,
    parent_path,
)

_TIMESTAMP_KEY = "$timestamp"

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SupabaseEntryStore(EntryStore):
    """Supabase implementation of the entry store.

    Change notifications cover writes made through this process.
    """

    client: Client
    table: str = "documents"
    feed: ChangeFeed = field(default_factory=ChangeFeed)
    clock: Callable[[], datetime] = _utcnow

    async def get(self, path: str) -> Document | None:
        """Return the document stored at `path`."""
        rows = await self._run(
            "get",
            lambda: self.client.table(self.table)
            .select("path, data")
            .eq("path", path)
            .limit(1)
            .execute(),
        )
        if not rows:
            return None
        return _parse_row(rows[0])

    async def list_children(self, collection_path: str) -> list[Document]:
        """Return documents whose parent is `collection_path`."""
        rows = await self._run(
            "list",
            lambda: self.client.table(self.table)
            .select("path, data")
            .eq("parent", collection_path)
            .order("path", desc=False)
            .execute(),
        )
        return [_parse_row(row) for row in rows]

    async def set(
        self, path: str, fields: dict[str, object], merge: bool = False
    ) -> None:
        """Write a document; merges are applied server-side."""
        data = _encode(fields, self.clock())
        if merge:
            await self._run(
                "merge",
                lambda: self.client.rpc(
                    "merge_document",
                    {
                        "p_table": self.table,
                        "p_path": path,
                        "p_parent": parent_path(path),
                        "p_data": data,
                    },
                ).execute(),
            )
        else:
            await self._run(
                "set",
                lambda: self.client.table(self.table)
                .upsert(_row(path, data), on_conflict="path")
                .execute(),
            )
        self.feed.publish([path])

    async def create(self, path: str, fields: dict[str, object]) -> bool:
        """Insert the document, leaving an existing one untouched."""
        data = _encode(fields, self.clock())
        rows = await self._run(
            "create",
            lambda: self.client.table(self.table)
            .upsert(_row(path, data), on_conflict="path", ignore_duplicates=True)
            .execute(),
        )
        created = bool(rows)
        if created:
            self.feed.publish([path])
        return created

    async def delete(self, path: str) -> None:
        """Delete a document by path."""
        await self._run(
            "delete",
            lambda: self.client.table(self.table).delete().eq("path", path).execute(),
        )
        self.feed.publish([path])

    async def batch_write(self, ops: list[WriteOp]) -> None:
        """Apply operations in one database transaction."""
        now = self.clock()
        payload = [
            {
                "kind": op.kind,
                "path": op.path,
                "parent": parent_path(op.path),
                "data": None if op.kind == DELETE else _encode(op.fields or {}, now),
                "merge": op.merge,
            }
            for op in ops
        ]
        await self._run(
            "batch",
            lambda: self.client.rpc(
                "apply_document_batch", {"p_table": self.table, "p_ops": payload}
            ).execute(),
        )
        self.feed.publish(op.path for op in ops)

    def watch(self, path: str) -> StoreWatch:
        """Watch a document or subtree for writes made through this store."""
        return self.feed.watch(path)

    def close(self) -> None:
        """Close every open watch."""
        self.feed.close_all()

    async def _run(
        self, action: str, call: Callable[[], object]
    ) -> list[dict[str, object]]:
        try:
            response = await asyncio.to_thread(call)
        except (APIError, httpx.HTTPError) as exc:
            _logger.warning("Supabase %s failed: %s", action, exc)
            raise StoreUnavailable(f"Supabase {action} failed: {exc}") from exc
        return getattr(response, "data", None) or []


def _row(path: str, data: dict[str, object]) -> dict[str, object]:
    return {"path": path, "parent": parent_path(path), "data": data}


def _parse_row(row: dict[str, object]) -> Document:
    data = row.get("data")
    return Document(
        path=str(row["path"]),
        data=_decode(data) if isinstance(data, dict) else {},
    )


def _encode(value: object, now: datetime) -> object:
    if value is SERVER_TIMESTAMP:
        return {_TIMESTAMP_KEY: now.isoformat()}
    if isinstance(value, datetime):
        return {_TIMESTAMP_KEY: value.isoformat()}
    if isinstance(value, dict):
        return {str(key): _encode(item, now) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_encode(item, now) for item in value]
    return value


def _decode(value: object) -> object:
    if isinstance(value, dict):
        if set(value) == {_TIMESTAMP_KEY} and isinstance(value[_TIMESTAMP_KEY], str):
            return datetime.fromisoformat(value[_TIMESTAMP_KEY])
        return {key: _decode(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_decode(item) for item in value]
    return value
