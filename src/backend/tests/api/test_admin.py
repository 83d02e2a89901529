"""
Tests for admin ledger maintenance endpoints.
"""

from typing import Callable

import pytest
from httpx import AsyncClient

from models.documents import CallerLevel
from repositories.vote_count_repository import VoteCountRepository


@pytest.fixture
def admin_headers(make_auth_headers: Callable) -> dict[str, str]:
    return make_auth_headers("admin-1", CallerLevel.ADMIN)


@pytest.fixture
async def with_votes(client: AsyncClient, voting_competition: dict) -> None:
    for contestant_id, ip in ((11, "10.0.0.1"), (11, "10.0.0.2"), (12, "10.0.0.3")):
        response = await client.post(
            "/api/v1/competitions/1/votes",
            json={"contestant_id": contestant_id},
            headers={"X-Forwarded-For": ip},
        )
        assert response.status_code == 201


@pytest.mark.unit
class TestAdminAccess:
    """Only admins reach maintenance endpoints."""

    @pytest.mark.parametrize("level", [CallerLevel.VIEWER, CallerLevel.TALENT, CallerLevel.HOST])
    async def test_non_admin_forbidden(
        self, client: AsyncClient, store, make_auth_headers: Callable, level: CallerLevel
    ) -> None:
        response = await client.post(
            "/api/v1/admin/competitions/1/reconcile", headers=make_auth_headers("user-1", level)
        )

        assert response.status_code == 403

    async def test_anonymous_unauthorized(self, client: AsyncClient, store) -> None:
        response = await client.delete("/api/v1/admin/competitions/1/ledger")

        assert response.status_code == 401


@pytest.mark.unit
class TestReconcile:
    """Recounting aggregates from the vote log."""

    async def test_reconcile_repairs_drift(
        self, client: AsyncClient, store, with_votes: None, admin_headers: dict
    ) -> None:
        await VoteCountRepository(store).overwrite(1, 11, online=50, in_person=0)

        response = await client.post("/api/v1/admin/competitions/1/reconcile", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["aggregates_checked"] == 2
        assert data["aggregates_repaired"] == 1
        repaired = next(r for r in data["results"] if r["contestant_id"] == 11)
        assert (repaired["before_total"], repaired["after_total"], repaired["drift"]) == (50, 2, -48)

    async def test_sync_one_contestant(
        self, client: AsyncClient, store, with_votes: None, admin_headers: dict
    ) -> None:
        await VoteCountRepository(store).overwrite(1, 12, online=0, in_person=0)

        response = await client.post(
            "/api/v1/admin/competitions/1/contestants/12/sync",
            json={"authoritative_total": 9},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["after_total"] == 1

    async def test_sync_without_body(
        self, client: AsyncClient, store, with_votes: None, admin_headers: dict
    ) -> None:
        response = await client.post(
            "/api/v1/admin/competitions/1/contestants/11/sync", headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["drift"] == 0


@pytest.mark.unit
class TestTeardown:
    """Deleting a competition's ledger."""

    async def test_delete_ledger(
        self, client: AsyncClient, store, with_votes: None, admin_headers: dict
    ) -> None:
        response = await client.delete("/api/v1/admin/competitions/1/ledger", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {
            "competition_id": 1,
            "votes_deleted": 3,
            "vote_counts_deleted": 2,
            "vote_quotas_deleted": 3,
        }

        total = (await client.get("/api/v1/competitions/1/votes/total")).json()
        assert total["total"] == 0
