"""
Tests for referral code endpoints.
"""

from typing import Callable

import pytest
from httpx import AsyncClient

from models.documents import CallerLevel


@pytest.fixture
def talent_headers(make_auth_headers: Callable) -> dict[str, str]:
    return make_auth_headers("talent-1", CallerLevel.TALENT, email="ada@example.com")


@pytest.fixture
def admin_headers(make_auth_headers: Callable) -> dict[str, str]:
    return make_auth_headers("admin-1", CallerLevel.ADMIN)


async def _create(client: AsyncClient, headers: dict[str, str], **body) -> dict:
    body.setdefault("owner_name", "Ada Lovelace")
    response = await client.post("/api/v1/referrals", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.unit
class TestCreateReferralCode:
    """POST /referrals"""

    async def test_talent_gets_own_code(self, client: AsyncClient, store, talent_headers: dict) -> None:
        data = await _create(client, talent_headers)

        assert data["owner_id"] == "talent-1"
        assert data["owner_type"] == "talent"
        assert data["owner_email"] == "ada@example.com"
        assert len(data["code"]) == 8

    async def test_repeat_request_returns_same_code(self, client: AsyncClient, store, talent_headers: dict) -> None:
        first = await _create(client, talent_headers)
        second = await _create(client, talent_headers)

        assert first["code"] == second["code"]

    async def test_viewer_forbidden(self, client: AsyncClient, store, make_auth_headers: Callable) -> None:
        response = await client.post(
            "/api/v1/referrals", json={"owner_name": "Fan"}, headers=make_auth_headers("fan-1")
        )

        assert response.status_code == 403

    async def test_anonymous_unauthorized(self, client: AsyncClient, store) -> None:
        response = await client.post("/api/v1/referrals", json={"owner_name": "Fan"})

        assert response.status_code == 401

    async def test_talent_cannot_issue_for_others(
        self, client: AsyncClient, store, talent_headers: dict
    ) -> None:
        response = await client.post(
            "/api/v1/referrals",
            json={"owner_name": "Grace", "owner_id": "talent-2"},
            headers=talent_headers,
        )

        assert response.status_code == 403

    async def test_admin_issues_custom_code(self, client: AsyncClient, store, admin_headers: dict) -> None:
        data = await _create(
            client,
            admin_headers,
            owner_name="Radio KXYZ",
            owner_id="kxyz",
            owner_type="custom",
            competition_id=1,
        )

        assert data["owner_id"] == "kxyz"
        assert data["owner_type"] == "custom"
        assert data["competition_id"] == 1


@pytest.mark.unit
class TestReadAndDelete:
    """Lookup, stats and deletion."""

    async def test_public_lookup_is_case_insensitive(
        self, client: AsyncClient, store, talent_headers: dict
    ) -> None:
        code = (await _create(client, talent_headers))["code"]

        response = await client.get(f"/api/v1/referrals/{code.lower()}")

        assert response.status_code == 200
        assert response.json()["code"] == code

    async def test_unknown_code_404(self, client: AsyncClient, store) -> None:
        response = await client.get("/api/v1/referrals/FFFFFFFF")

        assert response.status_code == 404

    async def test_votes_attributed_to_code(
        self,
        client: AsyncClient,
        voting_competition: dict,
        talent_headers: dict,
    ) -> None:
        code = (await _create(client, talent_headers))["code"]
        for ip in ("10.0.0.1", "10.0.0.1", "10.0.0.2"):
            response = await client.post(
                "/api/v1/competitions/1/votes",
                json={"contestant_id": 11, "referral_code": code},
                headers={"X-Forwarded-For": ip},
            )
            assert response.status_code == 201

        stats = (await client.get(f"/api/v1/referrals/{code}/stats", headers=talent_headers)).json()

        assert stats["total_votes_driven"] == 3
        assert stats["unique_voters"] == 2

    async def test_lowercase_code_from_shared_link_attributed(
        self,
        client: AsyncClient,
        voting_competition: dict,
        talent_headers: dict,
    ) -> None:
        code = (await _create(client, talent_headers))["code"]

        response = await client.post(
            "/api/v1/competitions/1/votes",
            json={"contestant_id": 11, "referral_code": code.lower()},
        )
        assert response.status_code == 201

        stats = (await client.get(f"/api/v1/referrals/{code.lower()}/stats", headers=talent_headers)).json()
        assert stats["total_votes_driven"] == 1

    async def test_stats_hidden_from_other_talents(
        self,
        client: AsyncClient,
        store,
        talent_headers: dict,
        make_auth_headers: Callable,
    ) -> None:
        code = (await _create(client, talent_headers))["code"]

        response = await client.get(
            f"/api/v1/referrals/{code}/stats",
            headers=make_auth_headers("talent-2", CallerLevel.TALENT),
        )

        assert response.status_code == 403

    async def test_stats_listing_scoped_to_caller(
        self,
        client: AsyncClient,
        store,
        talent_headers: dict,
        admin_headers: dict,
        make_auth_headers: Callable,
    ) -> None:
        await _create(client, talent_headers)
        await _create(client, make_auth_headers("talent-2", CallerLevel.TALENT), owner_name="Grace")

        own = (await client.get("/api/v1/referrals/stats", headers=talent_headers)).json()
        every = (await client.get("/api/v1/referrals/stats", headers=admin_headers)).json()

        assert [s["owner_id"] for s in own] == ["talent-1"]
        assert len(every) == 2

    async def test_owner_deletes_code(self, client: AsyncClient, store, talent_headers: dict) -> None:
        code = (await _create(client, talent_headers))["code"]

        response = await client.delete(f"/api/v1/referrals/{code}", headers=talent_headers)

        assert response.status_code == 204
        assert (await client.get(f"/api/v1/referrals/{code}")).status_code == 404

    async def test_other_talent_cannot_delete(
        self,
        client: AsyncClient,
        store,
        talent_headers: dict,
        make_auth_headers: Callable,
    ) -> None:
        code = (await _create(client, talent_headers))["code"]

        response = await client.delete(
            f"/api/v1/referrals/{code}",
            headers=make_auth_headers("talent-2", CallerLevel.TALENT),
        )

        assert response.status_code == 403
