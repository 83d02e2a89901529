"""
Vote Purchase Service

Sells vote packages. The payment collaborator charges the payer first; only
after a confirmed charge is the purchase recorded and its votes bulk cast.
A declined charge leaves no trace in the ledger.

Packages and the sales tax rate come from the platform settings document,
falling back to the built-in packages and DEFAULT_SALES_TAX_PERCENT.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Protocol, runtime_checkable

import structlog

from core.config import settings
from core.exceptions import GuestPurchasesNotFound, InvalidVoteRequest, UpstreamPaymentFailure
from core.security import normalize_referral_code
from db.store import DocumentStore
from models.documents import PlatformSettingsDocument, PurchaseDocument, VotePackage
from repositories.platform_settings_repository import PlatformSettingsRepository
from repositories.purchase_repository import PurchaseRepository
from services.sequencer import VOTE_PURCHASES
from services.vote_casting_service import VoteCastingService

logger = structlog.get_logger(__name__)


# =============================================================================
# Packages and Tax
# =============================================================================

DEFAULT_VOTE_PACKAGES: tuple[VotePackage, ...] = (
    VotePackage(id="starter", name="Starter Pack", vote_count=500, bonus_votes=0, price_cents=1000),
    VotePackage(id="fan", name="Fan Pack", vote_count=1000, bonus_votes=300, price_cents=1500),
    VotePackage(id="super-fan", name="Super Fan Pack", vote_count=2000, bonus_votes=600, price_cents=3000),
)


def calculate_tax(subtotal_cents: int, tax_percent: float) -> int:
    """Sales tax on a subtotal, rounded half-up to the cent."""
    tax = Decimal(subtotal_cents) * Decimal(str(tax_percent)) / Decimal(100)
    return int(tax.quantize(Decimal(1), rounding=ROUND_HALF_UP))


# =============================================================================
# Payment Collaborator
# =============================================================================


@dataclass
class PaymentResult:
    success: bool
    transaction_reference: Optional[str] = None
    error_message: Optional[str] = None


@runtime_checkable
class PaymentGateway(Protocol):
    """Charges a payer. Implemented outside the ledger."""

    async def charge(self, amount_cents: int, description: str, payer: str) -> PaymentResult: ...


# =============================================================================
# Purchases
# =============================================================================


@dataclass
class PurchaseRequest:
    competition_id: int
    contestant_id: int
    package: VotePackage
    payer_account_id: Optional[str] = None
    guest_email: Optional[str] = None
    guest_name: Optional[str] = None
    referral_code: Optional[str] = None

    @property
    def payer(self) -> str:
        return self.payer_account_id or self.guest_email or ""


@dataclass
class PurchaseResult:
    purchase: PurchaseDocument
    votes_cast: int


class PurchaseService:
    """Service for buying votes, listing purchases and managing what is on sale."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.purchases = PurchaseRepository(store)
        self.platform_settings = PlatformSettingsRepository(store)
        self.casting = VoteCastingService(store)

    # =========================================================================
    # Platform Settings
    # =========================================================================

    async def get_platform_settings(self) -> PlatformSettingsDocument:
        """Stored settings, with built-in defaults for anything not configured."""
        stored = await self.platform_settings.get()
        if stored is None:
            return PlatformSettingsDocument(
                vote_packages=list(DEFAULT_VOTE_PACKAGES),
                sales_tax_percent=settings.DEFAULT_SALES_TAX_PERCENT,
            )
        if not stored.vote_packages:
            stored = stored.model_copy(update={"vote_packages": list(DEFAULT_VOTE_PACKAGES)})
        return stored

    async def update_platform_settings(
        self,
        vote_packages: list[VotePackage],
        sales_tax_percent: float,
    ) -> PlatformSettingsDocument:
        """
        Replace the packages on sale and the sales tax rate.

        Raises:
            InvalidVoteRequest: if two packages share an id.
        """
        ids = [package.id for package in vote_packages]
        if len(set(ids)) != len(ids):
            raise InvalidVoteRequest("Vote package ids must be unique")

        saved = await self.platform_settings.save(
            PlatformSettingsDocument(vote_packages=vote_packages, sales_tax_percent=sales_tax_percent)
        )
        logger.info(
            "platform_settings_updated",
            packages=ids,
            sales_tax_percent=sales_tax_percent,
        )
        return saved

    async def list_packages(self) -> list[VotePackage]:
        """Packages currently on sale."""
        platform_settings = await self.get_platform_settings()
        return [p for p in platform_settings.vote_packages if p.is_active]

    async def get_package(self, package_id: str) -> VotePackage:
        """
        Raises:
            InvalidVoteRequest: if no active package has this id.
        """
        for package in await self.list_packages():
            if package.id == package_id:
                return package
        raise InvalidVoteRequest(f"Unknown vote package: {package_id}")

    # =========================================================================
    # Buying
    # =========================================================================

    async def purchase_votes(self, request: PurchaseRequest, payment_gateway: PaymentGateway) -> PurchaseResult:
        """
        Charge for a package, record the purchase and cast its votes.

        The payer is charged the package price plus sales tax. The recorded
        amount_charged is that tax-inclusive total, with subtotal_cents and
        tax_cents alongside it.

        Raises:
            CompetitionNotFound, VotingClosed, ContestantNotInCompetition:
                target validation, before the charge.
            InvalidVoteRequest: if there is no payer.
            UpstreamPaymentFailure: if the charge was declined or failed.
        """
        if not request.payer:
            raise InvalidVoteRequest("A payer account or guest email is required")

        competition, _ = await self.casting.validate_target(request.competition_id, request.contestant_id)
        package = request.package
        platform_settings = await self.get_platform_settings()
        tax_cents = calculate_tax(package.price_cents, platform_settings.sales_tax_percent)
        amount_cents = package.price_cents + tax_cents

        description = f"{package.units} votes ({package.name}) for contestant {request.contestant_id} in {competition.title}"
        result = await payment_gateway.charge(amount_cents, description, request.payer)
        if not result.success:
            logger.warning(
                "vote_purchase_payment_failed",
                competition_id=request.competition_id,
                contestant_id=request.contestant_id,
                package_id=package.id,
                error=result.error_message,
            )
            raise UpstreamPaymentFailure(result.error_message or "Transaction declined", result.transaction_reference)

        referral_code = normalize_referral_code(request.referral_code)
        purchase = PurchaseDocument(
            id=await self.casting.sequencer.next_id(VOTE_PURCHASES),
            payer_account_id=request.payer_account_id,
            guest_email=request.guest_email.lower().strip() if request.guest_email else None,
            guest_name=request.guest_name.strip() if request.guest_name else None,
            competition_id=request.competition_id,
            contestant_id=request.contestant_id,
            vote_count=package.units,
            amount_charged=amount_cents,
            subtotal_cents=package.price_cents,
            tax_cents=tax_cents,
            payment_reference=result.transaction_reference,
            referral_code=referral_code,
        )
        await self.purchases.create(purchase)

        logger.info(
            "vote_purchase_recorded",
            purchase_id=purchase.id,
            package_id=package.id,
            units=package.units,
            amount_cents=amount_cents,
            tax_cents=tax_cents,
            transaction_reference=result.transaction_reference,
        )

        votes_cast = await self.casting.cast_bulk_votes(purchase, referral_code)
        return PurchaseResult(purchase=purchase, votes_cast=votes_cast)

    # =========================================================================
    # Listing
    # =========================================================================

    async def list_by_payer(self, account_id: str) -> list[PurchaseDocument]:
        return await self.purchases.list_by_payer(account_id)

    async def lookup_guest_purchases(self, email: str, name: str) -> list[PurchaseDocument]:
        """
        A guest's purchases, found by the email and name given at checkout.

        Both must match; the name comparison ignores case and surrounding
        whitespace.

        Raises:
            GuestPurchasesNotFound: if nothing matches.
        """
        wanted = name.strip().casefold()
        purchases = [
            p
            for p in await self.purchases.list_by_guest_email(email)
            if p.guest_name and p.guest_name.strip().casefold() == wanted
        ]
        if not purchases:
            raise GuestPurchasesNotFound()
        return purchases

    async def list_by_competition(self, competition_id: int) -> list[PurchaseDocument]:
        return await self.purchases.list_by_competition(competition_id)
