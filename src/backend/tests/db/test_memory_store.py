"""
Tests for the in-memory document store.
"""

import asyncio

import pytest

from db.memory_store import InMemoryDocumentStore
from db.store import ConditionNotMetError, DocumentExistsError, DocumentNotFoundError, eq, gte, is_in, is_null, lt, ne, not_null


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.mark.unit
class TestInMemoryDocumentStoreCrud:
    """Point operations."""

    async def test_create_and_read(self, memory_store: InMemoryDocumentStore) -> None:
        await memory_store.create("things", {"id": "a", "value": 1})
        assert await memory_store.read("things", "a", partition_key="a") == {"id": "a", "value": 1}

    async def test_read_missing_returns_none(self, memory_store: InMemoryDocumentStore) -> None:
        assert await memory_store.read("things", "missing", partition_key="missing") is None

    async def test_create_duplicate_raises(self, memory_store: InMemoryDocumentStore) -> None:
        await memory_store.create("things", {"id": "a"})
        with pytest.raises(DocumentExistsError):
            await memory_store.create("things", {"id": "a"})

    async def test_returned_documents_are_copies(self, memory_store: InMemoryDocumentStore) -> None:
        await memory_store.create("things", {"id": "a", "tags": ["x"]})
        doc = await memory_store.read("things", "a", partition_key="a")
        doc["tags"].append("y")
        assert (await memory_store.read("things", "a", partition_key="a"))["tags"] == ["x"]

    async def test_upsert_replaces(self, memory_store: InMemoryDocumentStore) -> None:
        await memory_store.create("things", {"id": "a", "value": 1})
        await memory_store.upsert("things", {"id": "a", "value": 5})
        assert (await memory_store.read("things", "a", partition_key="a"))["value"] == 5

    async def test_delete_missing_raises(self, memory_store: InMemoryDocumentStore) -> None:
        with pytest.raises(DocumentNotFoundError):
            await memory_store.delete("things", "missing", partition_key="missing")


@pytest.mark.unit
class TestInMemoryDocumentStoreIncrement:
    """Atomic increments."""

    async def test_increment_returns_post_image(self, memory_store: InMemoryDocumentStore) -> None:
        await memory_store.create("counters", {"id": "votes", "value": 4})
        result = await memory_store.increment("counters", "votes", "votes", {"value": 1}, {"note": "x"})
        assert result["value"] == 5
        assert result["note"] == "x"

    async def test_increment_missing_field_starts_at_zero(self, memory_store: InMemoryDocumentStore) -> None:
        await memory_store.create("counters", {"id": "votes"})
        result = await memory_store.increment("counters", "votes", "votes", {"value": 3})
        assert result["value"] == 3

    async def test_increment_missing_document_raises(self, memory_store: InMemoryDocumentStore) -> None:
        with pytest.raises(DocumentNotFoundError):
            await memory_store.increment("counters", "votes", "votes", {"value": 1})

    async def test_concurrent_increments_are_not_lost(self, memory_store: InMemoryDocumentStore) -> None:
        await memory_store.create("counters", {"id": "votes", "value": 0})
        await asyncio.gather(
            *(memory_store.increment("counters", "votes", "votes", {"value": 1}) for _ in range(100))
        )
        assert (await memory_store.read("counters", "votes", partition_key="votes"))["value"] == 100

    async def test_conditional_increment_applies_while_conditions_hold(
        self, memory_store: InMemoryDocumentStore
    ) -> None:
        await memory_store.create("vote-quotas", {"id": "q", "used": 1})

        result = await memory_store.increment("vote-quotas", "q", "q", {"used": 1}, conditions=[lt("used", 2)])

        assert result["used"] == 2
        with pytest.raises(ConditionNotMetError):
            await memory_store.increment("vote-quotas", "q", "q", {"used": 1}, conditions=[lt("used", 2)])
        assert (await memory_store.read("vote-quotas", "q", partition_key="q"))["used"] == 2


@pytest.mark.unit
class TestInMemoryDocumentStoreQuery:
    """Predicate queries and counts."""

    @pytest.fixture
    async def populated(self, memory_store: InMemoryDocumentStore) -> InMemoryDocumentStore:
        await memory_store.create("votes", {"id": "1", "competition_id": 1, "at": "2026-01-01", "purchase_id": None})
        await memory_store.create("votes", {"id": "2", "competition_id": 1, "at": "2026-01-02", "purchase_id": 7})
        await memory_store.create("votes", {"id": "3", "competition_id": 2, "at": "2026-01-03"})
        return memory_store

    async def test_eq(self, populated: InMemoryDocumentStore) -> None:
        rows = await populated.query("votes", [eq("competition_id", 1)])
        assert {r["id"] for r in rows} == {"1", "2"}

    async def test_ne(self, populated: InMemoryDocumentStore) -> None:
        rows = await populated.query("votes", [ne("competition_id", 1)])
        assert [r["id"] for r in rows] == ["3"]

    async def test_range(self, populated: InMemoryDocumentStore) -> None:
        assert await populated.count("votes", [gte("at", "2026-01-02")]) == 2
        assert await populated.count("votes", [lt("at", "2026-01-02")]) == 1

    async def test_is_null_matches_missing_and_null(self, populated: InMemoryDocumentStore) -> None:
        rows = await populated.query("votes", [is_null("purchase_id")])
        assert {r["id"] for r in rows} == {"1", "3"}

    async def test_not_null(self, populated: InMemoryDocumentStore) -> None:
        rows = await populated.query("votes", [not_null("purchase_id")])
        assert [r["id"] for r in rows] == ["2"]

    async def test_is_in(self, populated: InMemoryDocumentStore) -> None:
        assert await populated.count("votes", [is_in("competition_id", [2, 3])]) == 1

    async def test_order_and_limit(self, populated: InMemoryDocumentStore) -> None:
        rows = await populated.query("votes", order_by="at", descending=True, limit=2)
        assert [r["id"] for r in rows] == ["3", "2"]

    async def test_zero_limit_returns_nothing(self, populated: InMemoryDocumentStore) -> None:
        assert await populated.query("votes", limit=0) == []

    async def test_unknown_container_is_empty(self, memory_store: InMemoryDocumentStore) -> None:
        assert await memory_store.query("nothing") == []
        assert await memory_store.count("nothing") == 0
