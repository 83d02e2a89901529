"""
Referral code endpoints.

Talents and hosts get their own code; admins can issue codes for anyone,
including custom owners without an account. Code lookup is public so the
voting page can validate a shared link.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import CallerIdentity, get_referral_service, require_talent
from models.documents import CallerLevel, OwnerType
from schemas.referral import ReferralCodeCreate, ReferralCodeResponse, ReferralStatsResponse
from services.referral_service import ReferralScope, ReferralService

logger = structlog.get_logger(__name__)

router = APIRouter()

_OWNER_TYPE_BY_LEVEL = {
    CallerLevel.TALENT: OwnerType.TALENT,
    CallerLevel.HOST: OwnerType.HOST,
    CallerLevel.ADMIN: OwnerType.ADMIN,
}


def _ensure_owner_or_admin(caller: CallerIdentity, owner_id: str) -> None:
    if not caller.is_admin and caller.account_id != owner_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not the owner of this referral code",
        )


@router.post("", response_model=ReferralCodeResponse, status_code=status.HTTP_201_CREATED)
async def create_referral_code(
    data: ReferralCodeCreate,
    caller: Annotated[CallerIdentity, Depends(require_talent)],
    service: Annotated[ReferralService, Depends(get_referral_service)],
) -> ReferralCodeResponse:
    """
    Issue a referral code.

    Returns the caller's existing unscoped code instead of creating a second
    one, unless the request is scoped or skips the duplicate check.
    """
    if caller.is_admin:
        owner_id = data.owner_id or caller.account_id
        owner_type = data.owner_type or OwnerType.ADMIN
    else:
        if data.owner_id and data.owner_id != caller.account_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only admins can issue codes for other owners",
            )
        owner_id = caller.account_id
        owner_type = _OWNER_TYPE_BY_LEVEL[caller.level]

    scoping = None
    if data.competition_id is not None or data.contestant_id is not None:
        scoping = ReferralScope(competition_id=data.competition_id, contestant_id=data.contestant_id)

    referral = await service.generate_code(
        owner_id=owner_id,
        owner_type=owner_type,
        owner_name=data.owner_name,
        scoping=scoping,
        talent_profile_id=data.talent_profile_id,
        owner_email=data.owner_email or caller.email,
        skip_duplicate_check=data.skip_duplicate_check and caller.is_admin,
    )
    return ReferralCodeResponse.model_validate(referral)


@router.get("/stats", response_model=list[ReferralStatsResponse])
async def list_referral_stats(
    caller: Annotated[CallerIdentity, Depends(require_talent)],
    service: Annotated[ReferralService, Depends(get_referral_service)],
) -> list[ReferralStatsResponse]:
    """Stats for every code (admins) or for the caller's own codes."""
    stats = await service.list_stats()
    if not caller.is_admin:
        stats = [s for s in stats if s.owner_id == caller.account_id]
    return [ReferralStatsResponse.model_validate(s) for s in stats]


@router.get("/{code}", response_model=ReferralCodeResponse)
async def get_referral_code(
    code: str,
    service: Annotated[ReferralService, Depends(get_referral_service)],
) -> ReferralCodeResponse:
    """Look up a referral code."""
    return ReferralCodeResponse.model_validate(await service.get_code(code))


@router.get("/{code}/stats", response_model=ReferralStatsResponse)
async def get_referral_stats(
    code: str,
    caller: Annotated[CallerIdentity, Depends(require_talent)],
    service: Annotated[ReferralService, Depends(get_referral_service)],
) -> ReferralStatsResponse:
    """Votes driven and unique voters for one code (owner or admin)."""
    stats = await service.get_stats(code)
    _ensure_owner_or_admin(caller, stats.owner_id)
    return ReferralStatsResponse.model_validate(stats)


@router.delete("/{code}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_referral_code(
    code: str,
    caller: Annotated[CallerIdentity, Depends(require_talent)],
    service: Annotated[ReferralService, Depends(get_referral_service)],
) -> None:
    """Delete a code together with its stats (owner or admin)."""
    referral = await service.get_code(code)
    _ensure_owner_or_admin(caller, referral.owner_id)
    await service.delete_code(referral.code)
    logger.info("referral_code_deleted_via_api", code=referral.code, account_id=caller.account_id)
