"""
Tests for the Cosmos DB document store.

The Cosmos helpers in db.cosmos_session are patched; these tests cover the
query translation and error mapping done by CosmosDocumentStore.
"""

from unittest.mock import AsyncMock, patch

import pytest
from azure.cosmos.exceptions import (
    CosmosHttpResponseError,
    CosmosResourceExistsError,
    CosmosResourceNotFoundError,
)

from db.cosmos_store import CosmosDocumentStore, build_filter_predicate, build_where_clause
from db.store import (
    ConditionNotMetError,
    DocumentExistsError,
    DocumentNotFoundError,
    StoreConflictError,
    eq,
    gte,
    is_in,
    is_null,
    lt,
    not_null,
)


@pytest.mark.unit
class TestBuildWhereClause:
    """Condition to Cosmos SQL translation."""

    def test_no_conditions(self) -> None:
        assert build_where_clause([]) == ("", [])

    def test_comparisons_are_parameterized(self) -> None:
        where, params = build_where_clause([eq("competition_id", 5), gte("cast_at", "2026-01-01")])

        assert where == " WHERE c.competition_id = @p0 AND c.cast_at >= @p1"
        assert params == [
            {"name": "@p0", "value": 5},
            {"name": "@p1", "value": "2026-01-01"},
        ]

    def test_in_uses_array_contains(self) -> None:
        where, params = build_where_clause([is_in("competition_id", [1, 2])])

        assert where == " WHERE ARRAY_CONTAINS(@p0, c.competition_id)"
        assert params == [{"name": "@p0", "value": [1, 2]}]

    def test_null_checks_cover_undefined_fields(self) -> None:
        where, params = build_where_clause([is_null("purchase_id"), not_null("voter_ip")])

        assert "(NOT IS_DEFINED(c.purchase_id) OR IS_NULL(c.purchase_id))" in where
        assert "(IS_DEFINED(c.voter_ip) AND NOT IS_NULL(c.voter_ip))" in where
        assert params == []


@pytest.mark.unit
class TestBuildFilterPredicate:
    """Condition to patch filter predicate translation."""

    def test_no_conditions(self) -> None:
        assert build_filter_predicate([]) is None

    def test_values_are_inlined_as_json(self) -> None:
        predicate = build_filter_predicate([eq("vote_day", "2026-10-19"), lt("used", 3)])

        assert predicate == 'FROM c WHERE c.vote_day = "2026-10-19" AND c.used < 3'

    def test_double_digit_parameters_are_not_clobbered(self) -> None:
        conditions = [eq(f"f{i}", i) for i in range(11)]

        predicate = build_filter_predicate(conditions)

        assert predicate.endswith("c.f1 = 1 AND c.f2 = 2 AND c.f3 = 3 AND c.f4 = 4 AND c.f5 = 5 AND c.f6 = 6 AND c.f7 = 7 AND c.f8 = 8 AND c.f9 = 9 AND c.f10 = 10")
        assert "@p" not in predicate


@pytest.mark.unit
class TestCosmosDocumentStore:
    """CosmosDocumentStore operations against patched session helpers."""

    async def test_increment_sends_incr_and_set_patch_operations(self) -> None:
        with patch("db.cosmos_store.cosmos_session.patch_item", new_callable=AsyncMock) as mock_patch:
            mock_patch.return_value = {"id": "votes", "value": 8}

            result = await CosmosDocumentStore().increment(
                "counters", "votes", "votes", {"value": 1}, {"updated_at": "now"}
            )

            assert result["value"] == 8
            mock_patch.assert_awaited_once_with(
                "counters",
                "votes",
                "votes",
                [
                    {"op": "incr", "path": "/value", "value": 1},
                    {"op": "set", "path": "/updated_at", "value": "now"},
                ],
                filter_predicate=None,
            )

    async def test_query_builds_order_and_limit(self) -> None:
        with patch("db.cosmos_store.cosmos_session.query_items", new_callable=AsyncMock) as mock_query:
            mock_query.return_value = []

            await CosmosDocumentStore().query(
                "votes", [eq("competition_id", 3)], partition_key=3, order_by="cast_at", descending=True, limit=10
            )

            query = mock_query.call_args.args[1]
            assert query == (
                "SELECT * FROM c WHERE c.competition_id = @p0 ORDER BY c.cast_at DESC OFFSET 0 LIMIT 10"
            )
            assert mock_query.call_args.args[3] == 3

    async def test_count_uses_value_count(self) -> None:
        with patch("db.cosmos_store.cosmos_session.query_count", new_callable=AsyncMock) as mock_count:
            mock_count.return_value = 4

            result = await CosmosDocumentStore().count("votes", [eq("competition_id", 3)])

            assert result == 4
            assert mock_count.call_args.args[1].startswith("SELECT VALUE COUNT(1) FROM c WHERE")

    async def test_read_missing_returns_none(self) -> None:
        with patch("db.cosmos_store.cosmos_session.read_item", new_callable=AsyncMock) as mock_read:
            mock_read.side_effect = CosmosResourceNotFoundError(status_code=404, message="missing")

            assert await CosmosDocumentStore().read("counters", "votes", "votes") is None

    async def test_create_conflict_maps_to_exists(self) -> None:
        with patch("db.cosmos_store.cosmos_session.create_item", new_callable=AsyncMock) as mock_create:
            mock_create.side_effect = CosmosResourceExistsError(status_code=409, message="exists")

            with pytest.raises(DocumentExistsError):
                await CosmosDocumentStore().create("counters", {"id": "votes"})

    async def test_patch_missing_maps_to_not_found(self) -> None:
        with patch("db.cosmos_store.cosmos_session.patch_item", new_callable=AsyncMock) as mock_patch:
            mock_patch.side_effect = CosmosResourceNotFoundError(status_code=404, message="missing")

            with pytest.raises(DocumentNotFoundError):
                await CosmosDocumentStore().increment("counters", "votes", "votes", {"value": 1})

    async def test_throttling_maps_to_conflict(self) -> None:
        with patch("db.cosmos_store.cosmos_session.patch_item", new_callable=AsyncMock) as mock_patch:
            mock_patch.side_effect = CosmosHttpResponseError(status_code=429, message="throttled")

            with pytest.raises(StoreConflictError):
                await CosmosDocumentStore().increment("counters", "votes", "votes", {"value": 1})

    async def test_conditional_increment_sends_filter_predicate(self) -> None:
        with patch("db.cosmos_store.cosmos_session.patch_item", new_callable=AsyncMock) as mock_patch:
            mock_patch.return_value = {"id": "q", "used": 2}

            await CosmosDocumentStore().increment("vote-quotas", "q", "q", {"used": 1}, conditions=[lt("used", 3)])

            assert mock_patch.call_args.kwargs["filter_predicate"] == "FROM c WHERE c.used < 3"

    async def test_failed_filter_predicate_maps_to_condition_not_met(self) -> None:
        with patch("db.cosmos_store.cosmos_session.patch_item", new_callable=AsyncMock) as mock_patch:
            mock_patch.side_effect = CosmosHttpResponseError(status_code=412, message="precondition failed")

            with pytest.raises(ConditionNotMetError):
                await CosmosDocumentStore().increment(
                    "vote-quotas", "q", "q", {"used": 1}, conditions=[lt("used", 3)]
                )

    async def test_zero_limit_is_sent(self) -> None:
        with patch("db.cosmos_store.cosmos_session.query_items", new_callable=AsyncMock) as mock_query:
            mock_query.return_value = []

            await CosmosDocumentStore().query("votes", limit=0)

            assert mock_query.call_args.args[1] == "SELECT * FROM c OFFSET 0 LIMIT 0"
