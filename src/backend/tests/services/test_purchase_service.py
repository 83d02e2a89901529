"""
Tests for the Vote Purchase Service.
"""

from typing import Callable

import pytest

from core.exceptions import GuestPurchasesNotFound, InvalidVoteRequest, UpstreamPaymentFailure, VotingClosed
from db.memory_store import InMemoryDocumentStore
from models.documents import VotePackage
from services.purchase_service import (
    DEFAULT_VOTE_PACKAGES,
    PurchaseRequest,
    PurchaseService,
    calculate_tax,
)

PACKAGES = {p.id: p for p in DEFAULT_VOTE_PACKAGES}


@pytest.fixture
def purchases(store: InMemoryDocumentStore) -> PurchaseService:
    return PurchaseService(store)


def _request(package_id: str = "starter", **overrides) -> PurchaseRequest:
    fields = {
        "competition_id": 1,
        "contestant_id": 11,
        "package": PACKAGES[package_id],
        "payer_account_id": "fan-1",
    }
    fields.update(overrides)
    return PurchaseRequest(**fields)


@pytest.mark.unit
class TestPackages:
    """Package catalogue from platform settings."""

    async def test_defaults_when_nothing_configured(self, purchases: PurchaseService) -> None:
        packages = await purchases.list_packages()

        assert {p.id: (p.units, p.price_cents) for p in packages} == {
            "starter": (500, 1000),
            "fan": (1300, 1500),
            "super-fan": (2600, 3000),
        }
        assert (await purchases.get_platform_settings()).sales_tax_percent == 0.0

    async def test_configured_packages_replace_defaults(self, purchases: PurchaseService) -> None:
        await purchases.update_platform_settings(
            [
                VotePackage(id="mini", name="Mini Pack", vote_count=50, price_cents=200),
                VotePackage(id="retired", name="Old Pack", vote_count=10, price_cents=100, is_active=False),
            ],
            sales_tax_percent=8.25,
        )

        assert [p.id for p in await purchases.list_packages()] == ["mini"]
        assert (await purchases.get_package("mini")).units == 50
        with pytest.raises(InvalidVoteRequest):
            await purchases.get_package("starter")
        with pytest.raises(InvalidVoteRequest):
            await purchases.get_package("retired")

    async def test_duplicate_package_ids_rejected(self, purchases: PurchaseService) -> None:
        package = VotePackage(id="mini", name="Mini Pack", vote_count=50, price_cents=200)

        with pytest.raises(InvalidVoteRequest):
            await purchases.update_platform_settings([package, package], sales_tax_percent=0)

    async def test_unknown_package(self, purchases: PurchaseService) -> None:
        with pytest.raises(InvalidVoteRequest):
            await purchases.get_package("mega")

    def test_tax_rounds_half_up_to_the_cent(self) -> None:
        assert calculate_tax(1500, 0) == 0
        assert calculate_tax(1500, 8.25) == 124  # 123.75
        assert calculate_tax(1000, 7.5) == 75
        assert calculate_tax(1010, 0.5) == 5  # 5.05
        assert calculate_tax(999, 5) == 50  # 49.95



@pytest.mark.unit
class TestPurchaseVotes:
    """Charge, record, bulk cast."""

    async def test_fan_pack_casts_votes_with_bonus(
        self, purchases: PurchaseService, voting_competition: dict, gateway_factory: Callable
    ) -> None:
        gateway = gateway_factory()

        result = await purchases.purchase_votes(_request("fan"), gateway)

        assert result.votes_cast == 1300
        assert result.purchase.vote_count == 1300
        assert result.purchase.amount_charged == 1500
        assert result.purchase.payment_reference == "txn-1"
        assert await purchases.casting.votes.count_for_purchase(1, result.purchase.id) == 1300
        assert await purchases.casting.get_vote_count(11, 1) == 1300
        assert len(gateway.charges) == 1
        assert gateway.charges[0]["amount_cents"] == 1500
        assert gateway.charges[0]["payer"] == "fan-1"

    async def test_500_plus_300_bonus_produces_800_rows(
        self, purchases: PurchaseService, voting_competition: dict, gateway_factory: Callable
    ) -> None:
        package = VotePackage(id="promo", name="Promo Pack", vote_count=500, bonus_votes=300, price_cents=1200)

        result = await purchases.purchase_votes(
            _request(contestant_id=12, package=package, payer_account_id=None, guest_email="Guest@Example.com"),
            gateway_factory(),
        )

        rows = await purchases.casting.votes.list_for_purchase(1, result.purchase.id)
        assert len(rows) == 800
        assert {row.purchase_id for row in rows} == {result.purchase.id}
        assert (await purchases.casting.counts.get(1, 12)).total_count == 800
        assert result.purchase.guest_email == "guest@example.com"

    async def test_declined_payment_writes_nothing(
        self,
        purchases: PurchaseService,
        voting_competition: dict,
        store: InMemoryDocumentStore,
        gateway_factory: Callable,
    ) -> None:
        with pytest.raises(UpstreamPaymentFailure) as exc_info:
            await purchases.purchase_votes(
                _request(),
                gateway_factory(approve=False, error_message="Insufficient funds"),
            )

        assert exc_info.value.message == "Payment failed: Insufficient funds"
        assert exc_info.value.status_code == 402
        assert await store.count("vote-purchases") == 0
        assert await store.count("votes") == 0

    async def test_target_validated_before_charge(
        self,
        purchases: PurchaseService,
        seed_competition: Callable,
        seed_contestant: Callable,
        gateway_factory: Callable,
    ) -> None:
        await seed_competition(1, status="completed")
        await seed_contestant(11, 1)
        gateway = gateway_factory()

        with pytest.raises(VotingClosed):
            await purchases.purchase_votes(_request(), gateway)

        assert gateway.charges == []

    async def test_payer_required(
        self, purchases: PurchaseService, voting_competition: dict, gateway_factory: Callable
    ) -> None:
        with pytest.raises(InvalidVoteRequest):
            await purchases.purchase_votes(_request(payer_account_id=None), gateway_factory())

    async def test_referral_attributed_to_payer(
        self,
        purchases: PurchaseService,
        voting_competition: dict,
        gateway_factory: Callable,
    ) -> None:
        referral = await purchases.casting.referrals.generate_code("talent-1", "talent", "Ada")

        await purchases.purchase_votes(_request(referral_code=referral.code), gateway_factory())

        stats = await purchases.casting.referrals.get_stats(referral.code)
        assert (stats.total_votes_driven, stats.unique_voters) == (500, 1)

    async def test_purchases_listable(
        self, purchases: PurchaseService, voting_competition: dict, gateway_factory: Callable
    ) -> None:
        await purchases.purchase_votes(_request(), gateway_factory())
        await purchases.purchase_votes(_request(), gateway_factory())

        assert len(await purchases.list_by_payer("fan-1")) == 2
        assert len(await purchases.list_by_competition(1)) == 2
        assert await purchases.list_by_payer("someone-else") == []

    async def test_sales_tax_added_to_charge(
        self, purchases: PurchaseService, voting_competition: dict, gateway_factory: Callable
    ) -> None:
        await purchases.update_platform_settings(list(DEFAULT_VOTE_PACKAGES), sales_tax_percent=8.25)
        gateway = gateway_factory()

        result = await purchases.purchase_votes(_request("fan"), gateway)

        assert gateway.charges[0]["amount_cents"] == 1624
        assert (result.purchase.subtotal_cents, result.purchase.tax_cents) == (1500, 124)
        assert result.purchase.amount_charged == 1624
        # Tax never changes the number of votes delivered
        assert result.votes_cast == 1300

    async def test_lowercase_referral_code_attributed(
        self, purchases: PurchaseService, voting_competition: dict, gateway_factory: Callable
    ) -> None:
        referral = await purchases.casting.referrals.generate_code("talent-1", "talent", "Ada")

        result = await purchases.purchase_votes(_request(referral_code=referral.code.lower()), gateway_factory())

        assert result.purchase.referral_code == referral.code
        assert (await purchases.casting.referrals.get_stats(referral.code)).total_votes_driven == 500


@pytest.mark.unit
class TestGuestLookup:
    """Finding guest purchases by checkout name and email."""

    @pytest.fixture
    async def guest_purchase(
        self, purchases: PurchaseService, voting_competition: dict, gateway_factory: Callable
    ) -> None:
        await purchases.purchase_votes(
            _request(payer_account_id=None, guest_email="Guest@Example.com", guest_name="Jo Guest"),
            gateway_factory(),
        )

    async def test_name_and_email_match(self, purchases: PurchaseService, guest_purchase: None) -> None:
        found = await purchases.lookup_guest_purchases(" guest@example.com", "jo guest ")

        assert [p.vote_count for p in found] == [500]

    async def test_wrong_name_finds_nothing(self, purchases: PurchaseService, guest_purchase: None) -> None:
        with pytest.raises(GuestPurchasesNotFound):
            await purchases.lookup_guest_purchases("guest@example.com", "Someone Else")

    async def test_unknown_email_finds_nothing(self, purchases: PurchaseService, guest_purchase: None) -> None:
        with pytest.raises(GuestPurchasesNotFound):
            await purchases.lookup_guest_purchases("other@example.com", "Jo Guest")
