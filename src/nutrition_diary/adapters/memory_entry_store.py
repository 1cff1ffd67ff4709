"""In-memory entry store used for local runs and tests."""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from nutrition_diary.adapters.change_feed import ChangeFeed
from nutrition_diary.errors import ValidationError
from nutrition_diary.services.store import (
    DELETE,
    SERVER_TIMESTAMP,
    SET,
    Document,
    EntryStore,
    StoreWatch,
    WriteOp,
    parent_path,
)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class InMemoryEntryStore(EntryStore):
    """Dictionary-backed store.

    Every operation yields to the event loop once and then applies without
    further suspension, so each call (and each batch) is atomic with respect
    to other coroutines.
    """

    clock: Callable[[], datetime] = _utcnow
    feed: ChangeFeed = field(default_factory=ChangeFeed)
    documents: dict[str, dict[str, object]] = field(default_factory=dict)

    async def get(self, path: str) -> Document | None:
        """Return a copy of the document at `path`."""
        await asyncio.sleep(0)
        data = self.documents.get(path)
        if data is None:
            return None
        return Document(path=path, data=copy.deepcopy(data))

    async def list_children(self, collection_path: str) -> list[Document]:
        """Return the documents directly under a collection, ordered by path."""
        await asyncio.sleep(0)
        return [
            Document(path=path, data=copy.deepcopy(data))
            for path, data in sorted(self.documents.items())
            if parent_path(path) == collection_path
        ]

    async def set(
        self, path: str, fields: dict[str, object], merge: bool = False
    ) -> None:
        """Write a document, merging top-level fields when asked to."""
        await asyncio.sleep(0)
        self._apply(WriteOp.put(path, fields, merge=merge), self.clock())
        self.feed.publish([path])

    async def create(self, path: str, fields: dict[str, object]) -> bool:
        """Create the document unless it already exists."""
        await asyncio.sleep(0)
        if path in self.documents:
            return False
        self._apply(WriteOp.put(path, fields), self.clock())
        self.feed.publish([path])
        return True

    async def delete(self, path: str) -> None:
        """Delete a document if present."""
        await asyncio.sleep(0)
        if self.documents.pop(path, None) is not None:
            self.feed.publish([path])

    async def batch_write(self, ops: list[WriteOp]) -> None:
        """Apply every operation or none of them."""
        await asyncio.sleep(0)
        for op in ops:
            _validate(op)
        snapshot = copy.deepcopy(self.documents)
        now = self.clock()
        try:
            for op in ops:
                self._apply(op, now)
        except Exception:
            self.documents = snapshot
            raise
        self.feed.publish(op.path for op in ops)

    def watch(self, path: str) -> StoreWatch:
        """Watch a document or a subtree."""
        return self.feed.watch(path)

    def close(self) -> None:
        """Close every open watch."""
        self.feed.close_all()

    def _apply(self, op: WriteOp, now: datetime) -> None:
        _validate(op)
        if op.kind == DELETE:
            self.documents.pop(op.path, None)
            return
        resolved = _resolve_timestamps(op.fields or {}, now)
        if op.merge and op.path in self.documents:
            self.documents[op.path].update(resolved)
        else:
            self.documents[op.path] = resolved


def _validate(op: WriteOp) -> None:
    if op.kind not in {SET, DELETE}:
        raise ValidationError(f"Unsupported write operation: {op.kind}")
    if op.kind == SET and op.fields is None:
        raise ValidationError(f"Missing fields for write to {op.path}")


def _resolve_timestamps(value: object, now: datetime) -> object:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, dict):
        return {key: _resolve_timestamps(item, now) for key, item in value.items()}
    if isinstance(value, list):
        return [_resolve_timestamps(item, now) for item in value]
    return copy.deepcopy(value)
