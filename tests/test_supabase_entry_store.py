"""Tests for the Supabase entry store."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime

import httpx
import pytest
from postgrest.exceptions import APIError

from nutrition_diary.adapters.supabase_entry_store import SupabaseEntryStore
from nutrition_diary.errors import StoreUnavailable
from nutrition_diary.services.store import SERVER_TIMESTAMP, WriteOp

NOW = datetime(2024, 3, 13, 12, 0, tzinfo=UTC)


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "upsert": [], "delete": []}
    )
    last_payload: object | None = None
    last_options: dict[str, object] = field(default_factory=dict)
    last_filters: list[tuple[str, object]] = field(default_factory=list)
    error: Exception | None = None

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        return self

    def upsert(self, payload: object, **options: object) -> "FakeTable":
        self._action = "upsert"
        self.last_payload = payload
        self.last_options = options
        return self

    def delete(self) -> "FakeTable":
        self._action = "delete"
        return self

    def eq(self, column: str, value: object) -> "FakeTable":
        self.last_filters.append((column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def order(self, _column: str, desc: bool = False) -> "FakeTable":
        return self

    def execute(self) -> FakeResponse:
        if self.error is not None:
            raise self.error
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeRpc:
    client: "FakeSupabaseClient"
    name: str
    params: dict[str, object]

    def execute(self) -> FakeResponse:
        self.client.rpc_calls.append((self.name, self.params))
        return FakeResponse(data=None)


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)
    rpc_calls: list[tuple[str, dict[str, object]]] = field(default_factory=list)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]

    def rpc(self, name: str, params: dict[str, object]) -> FakeRpc:
        return FakeRpc(client=self, name=name, params=params)


def _store(client: FakeSupabaseClient) -> SupabaseEntryStore:
    return SupabaseEntryStore(client=client, clock=lambda: NOW)


def test_get_decodes_timestamps() -> None:
    client = FakeSupabaseClient()
    client.table("documents").queue(
        "select",
        [
            {
                "path": "users/u/days/d/meals/lunch",
                "data": {
                    "name": "Lunch",
                    "createdAt": {"$timestamp": NOW.isoformat()},
                },
            }
        ],
    )

    document = asyncio.run(_store(client).get("users/u/days/d/meals/lunch"))

    assert document is not None
    assert document.id == "lunch"
    assert document.data == {"name": "Lunch", "createdAt": NOW}
    assert client.table("documents").last_filters == [
        ("path", "users/u/days/d/meals/lunch")
    ]


def test_get_missing_document_returns_none() -> None:
    assert asyncio.run(_store(FakeSupabaseClient()).get("a/b")) is None


def test_list_children_filters_by_parent() -> None:
    client = FakeSupabaseClient()
    table = client.table("documents")
    table.queue(
        "select",
        [
            {"path": "m/breakfast", "data": {"name": "Breakfast"}},
            {"path": "m/lunch", "data": None},
        ],
    )

    documents = asyncio.run(_store(client).list_children("m"))

    assert [document.id for document in documents] == ["breakfast", "lunch"]
    assert documents[1].data == {}
    assert table.last_filters == [("parent", "m")]


def test_set_upserts_encoded_row() -> None:
    client = FakeSupabaseClient()

    fields = {"name": "Rice", "createdAt": SERVER_TIMESTAMP}

    asyncio.run(_store(client).set("m/lunch/foods/f", fields))

    table = client.table("documents")
    assert table.last_payload == {
        "path": "m/lunch/foods/f",
        "parent": "m/lunch/foods",
        "data": {"name": "Rice", "createdAt": {"$timestamp": NOW.isoformat()}},
    }
    assert table.last_options == {"on_conflict": "path"}


def test_merge_goes_through_rpc() -> None:
    client = FakeSupabaseClient()

    asyncio.run(_store(client).set("m/lunch", {"name": "Lunch"}, merge=True))

    assert client.rpc_calls == [
        (
            "merge_document",
            {
                "p_table": "documents",
                "p_path": "m/lunch",
                "p_parent": "m",
                "p_data": {"name": "Lunch"},
            },
        )
    ]


def test_create_reports_whether_row_was_inserted() -> None:
    client = FakeSupabaseClient()
    table = client.table("documents")
    table.queue("upsert", [{"path": "m/breakfast"}])
    table.queue("upsert", [])
    store = _store(client)

    first = asyncio.run(store.create("m/breakfast", {"name": "Breakfast"}))
    second = asyncio.run(store.create("m/breakfast", {"name": "Breakfast"}))

    assert (first, second) == (True, False)
    assert table.last_options == {"on_conflict": "path", "ignore_duplicates": True}


def test_batch_write_sends_all_operations() -> None:
    client = FakeSupabaseClient()

    asyncio.run(
        _store(client).batch_write(
            [
                WriteOp.remove("m/a/foods/f"),
                WriteOp.put("s/daily", {"updatedAt": SERVER_TIMESTAMP}, merge=True),
            ]
        )
    )

    name, params = client.rpc_calls[0]
    assert name == "apply_document_batch"
    assert params == {
        "p_table": "documents",
        "p_ops": [
            {
                "kind": "delete",
                "path": "m/a/foods/f",
                "parent": "m/a/foods",
                "data": None,
                "merge": False,
            },
            {
                "kind": "set",
                "path": "s/daily",
                "parent": "s",
                "data": {"updatedAt": {"$timestamp": NOW.isoformat()}},
                "merge": True,
            },
        ],
    }


def test_writes_notify_watches() -> None:
    async def scenario() -> frozenset[str] | None:
        store = _store(FakeSupabaseClient())
        watch = store.watch("m")
        await store.delete("m/lunch")
        changed = await watch.next_change()
        store.close()
        return changed

    assert asyncio.run(scenario()) == frozenset({"m/lunch"})


@pytest.mark.parametrize(
    "error",
    [
        APIError({"message": "relation does not exist", "code": "42P01"}),
        httpx.ConnectError("connection refused"),
    ],
)
def test_failures_raise_store_unavailable(error: Exception) -> None:
    client = FakeSupabaseClient()
    client.table("documents").error = error

    with pytest.raises(StoreUnavailable):
        asyncio.run(_store(client).get("m/lunch"))


def test_custom_table_is_used_for_reads_merges_and_batches() -> None:
    client = FakeSupabaseClient()
    client.table("diary_documents").queue(
        "select", [{"path": "m/lunch", "data": {"name": "Lunch"}}]
    )
    store = SupabaseEntryStore(
        client=client, table="diary_documents", clock=lambda: NOW
    )

    async def scenario() -> None:
        await store.get("m/lunch")
        await store.set("m/lunch", {"name": "Midday"}, merge=True)
        await store.batch_write([WriteOp.remove("m/lunch")])

    asyncio.run(scenario())

    assert set(client.tables) == {"diary_documents"}
    assert [params["p_table"] for _, params in client.rpc_calls] == [
        "diary_documents",
        "diary_documents",
    ]
