"""Hierarchical document store port.

Documents are addressed by slash-separated paths that alternate collection
and document segments::

    users/{user_id}/days/{yyyy-MM-dd}/meals/{meal_id}/foods/{food_id}

Adapters implement `EntryStore`; services only ever talk to this protocol.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Protocol

from nutrition_diary.domain.days import day_key
from nutrition_diary.errors import ValidationError


class _ServerTimestamp:
    """Placeholder replaced by the store clock when a write commits."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()

SET = "set"
DELETE = "delete"


@dataclass(frozen=True)
class Document:
    """Snapshot of a stored document."""

    path: str
    data: dict[str, object]

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class WriteOp:
    """One operation of an atomic batch."""

    kind: str
    path: str
    fields: dict[str, object] | None = None
    merge: bool = False

    @classmethod
    def put(
        cls, path: str, fields: dict[str, object], merge: bool = False
    ) -> WriteOp:
        return cls(kind=SET, path=path, fields=fields, merge=merge)

    @classmethod
    def remove(cls, path: str) -> WriteOp:
        return cls(kind=DELETE, path=path)


class StoreWatch(Protocol):
    """Change feed for a document or a subtree of the store."""

    async def next_change(self) -> frozenset[str] | None:
        """Wait for changes and return the changed paths, or None once closed.

        Notifications that queued up while the caller was busy are returned
        together as one batch.
        """

    def close(self) -> None:
        """Stop watching; safe to call more than once."""


class EntryStore(Protocol):
    """Persistence interface for the diary hierarchy."""

    async def get(self, path: str) -> Document | None:
        """Return the document at `path`, if present."""

    async def list_children(self, collection_path: str) -> list[Document]:
        """Return the documents directly under a collection."""

    async def set(
        self, path: str, fields: dict[str, object], merge: bool = False
    ) -> None:
        """Write a document; with `merge` only the given top-level fields change."""

    async def create(self, path: str, fields: dict[str, object]) -> bool:
        """Create the document only if absent; return True when it was created."""

    async def delete(self, path: str) -> None:
        """Delete a document; deleting a missing document is a no-op."""

    async def batch_write(self, ops: list[WriteOp]) -> None:
        """Apply all operations atomically."""

    def watch(self, path: str) -> StoreWatch:
        """Watch a document or every document below a collection."""

    def close(self) -> None:
        """Close every open watch."""


def parent_path(path: str) -> str:
    """Return the collection path containing `path`."""
    return path.rsplit("/", 1)[0]


def is_within(path: str, prefix: str) -> bool:
    """Return True when `path` equals `prefix` or lies below it."""
    return path == prefix or path.startswith(prefix + "/")


def _segment(value: str) -> str:
    cleaned = str(value).strip()
    if not cleaned or "/" in cleaned:
        raise ValidationError(f"Invalid identifier: {value!r}")
    return cleaned


def user_path(user_id: str) -> str:
    return f"users/{_segment(user_id)}"


def targets_path(user_id: str) -> str:
    return f"{user_path(user_id)}/settings/targets"


def days_path(user_id: str) -> str:
    return f"{user_path(user_id)}/days"


def day_path(user_id: str, day: date) -> str:
    return f"{days_path(user_id)}/{day_key(day)}"


def meals_path(user_id: str, day: date) -> str:
    return f"{day_path(user_id, day)}/meals"


def meal_path(user_id: str, day: date, meal_id: str) -> str:
    return f"{meals_path(user_id, day)}/{_segment(meal_id)}"


def foods_path(user_id: str, day: date, meal_id: str) -> str:
    return f"{meal_path(user_id, day, meal_id)}/foods"


def food_path(user_id: str, day: date, meal_id: str, food_id: str) -> str:
    return f"{foods_path(user_id, day, meal_id)}/{_segment(food_id)}"


def summary_path(user_id: str, day: date) -> str:
    return f"{day_path(user_id, day)}/summary/daily"
