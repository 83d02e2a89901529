"""
Vote purchase endpoints.

Signed-in voters and guests can buy vote packages. The charge goes through
the payment collaborator before anything is written.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import CallerIdentity, get_caller, get_payment_gateway, get_purchase_service
from schemas.purchase import (
    GuestLookupRequest,
    PurchaseCreate,
    PurchaseRecordResponse,
    PurchaseResponse,
    VotePackageSchema,
    VotePackagesResponse,
)
from services.purchase_service import PaymentGateway, PurchaseRequest, PurchaseService

router = APIRouter()


@router.get("/packages", response_model=VotePackagesResponse)
async def list_vote_packages(
    service: Annotated[PurchaseService, Depends(get_purchase_service)],
) -> VotePackagesResponse:
    """Vote packages on sale, with the sales tax rate added at checkout."""
    platform_settings = await service.get_platform_settings()
    return VotePackagesResponse(
        packages=[VotePackageSchema.model_validate(p) for p in platform_settings.vote_packages if p.is_active],
        sales_tax_percent=platform_settings.sales_tax_percent,
    )


@router.post("", response_model=PurchaseResponse, status_code=status.HTTP_201_CREATED)
async def purchase_votes(
    data: PurchaseCreate,
    caller: Annotated[CallerIdentity, Depends(get_caller)],
    service: Annotated[PurchaseService, Depends(get_purchase_service)],
    gateway: Annotated[PaymentGateway, Depends(get_payment_gateway)],
) -> PurchaseResponse:
    """
    Buy a vote package for a contestant.

    Purchased votes are not subject to the daily free-vote limit. The
    charge is the package price plus sales tax.
    """
    result = await service.purchase_votes(
        PurchaseRequest(
            competition_id=data.competition_id,
            contestant_id=data.contestant_id,
            package=await service.get_package(data.package_id),
            payer_account_id=caller.account_id,
            guest_email=None if caller.is_authenticated else data.guest_email,
            guest_name=data.guest_name,
            referral_code=data.referral_code,
        ),
        gateway,
    )

    purchase = result.purchase
    return PurchaseResponse(
        purchase_id=purchase.id,
        competition_id=purchase.competition_id,
        contestant_id=purchase.contestant_id,
        vote_count=purchase.vote_count,
        votes_cast=result.votes_cast,
        amount_charged=purchase.amount_charged,
        subtotal_cents=purchase.subtotal_cents,
        tax_cents=purchase.tax_cents,
        payment_reference=purchase.payment_reference,
        purchased_at=purchase.purchased_at,
    )


@router.get("", response_model=list[PurchaseRecordResponse])
async def list_my_purchases(
    caller: Annotated[CallerIdentity, Depends(get_caller)],
    service: Annotated[PurchaseService, Depends(get_purchase_service)],
) -> list[PurchaseRecordResponse]:
    """The signed-in caller's purchases, newest first."""
    if not caller.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    purchases = await service.list_by_payer(caller.account_id)
    return [PurchaseRecordResponse.model_validate(p) for p in purchases]


@router.post("/guest/lookup", response_model=list[PurchaseRecordResponse])
async def lookup_guest_purchases(
    data: GuestLookupRequest,
    service: Annotated[PurchaseService, Depends(get_purchase_service)],
) -> list[PurchaseRecordResponse]:
    """A guest's purchases, by the name and email used at checkout."""
    purchases = await service.lookup_guest_purchases(data.email, data.name)
    return [PurchaseRecordResponse.model_validate(p) for p in purchases]
