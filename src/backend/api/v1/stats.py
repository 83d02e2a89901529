"""
Platform statistics endpoints.

Public, unauthenticated totals for the landing page.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from api.deps import get_casting_service
from schemas.vote import PlatformVotesResponse
from services.vote_casting_service import VoteCastingService

router = APIRouter()


@router.get("/total-votes", response_model=PlatformVotesResponse)
async def get_total_platform_votes(
    service: Annotated[VoteCastingService, Depends(get_casting_service)],
) -> PlatformVotesResponse:
    """Votes cast across every competition on the platform."""
    return PlatformVotesResponse(total_votes=await service.get_total_platform_votes())
