"""
Vote endpoints.

Casting and count reads for one competition. Anonymous viewers may vote;
they are rate limited by IP. In-person votes are entered by hosts at the
venue and are rate limited by the terminal's identity token.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import CallerIdentity, get_caller, get_casting_service
from models.documents import CallerLevel, VoteSource
from schemas.vote import (
    CompetitionTotalResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    VoteCountResponse,
    VoteCreate,
    VoteResponse,
)
from services.vote_casting_service import VoteCastingService, VoteRequest

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/{competition_id}/votes", response_model=VoteResponse, status_code=status.HTTP_201_CREATED)
async def cast_vote(
    competition_id: int,
    vote_data: VoteCreate,
    caller: Annotated[CallerIdentity, Depends(get_caller)],
    service: Annotated[VoteCastingService, Depends(get_casting_service)],
) -> VoteResponse:
    """
    Cast a free vote for a contestant.

    Requirements:
    - Competition must be accepting votes
    - Contestant must be entered in the competition
    - Voter must be under the competition's daily limit
    - In-person votes require host access
    """
    if vote_data.source == VoteSource.IN_PERSON and caller.level < CallerLevel.HOST:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only hosts can record in-person votes",
        )

    vote = await service.cast_vote(
        VoteRequest(
            competition_id=competition_id,
            contestant_id=vote_data.contestant_id,
            source=vote_data.source,
            voter_ip=caller.ip,
            account_id=caller.account_id,
            venue_token=vote_data.venue_token,
            referral_code=vote_data.referral_code,
        )
    )

    return VoteResponse(
        success=True,
        message="Vote recorded",
        vote_id=vote.id,
        competition_id=vote.competition_id,
        contestant_id=vote.contestant_id,
        source=vote.source,
        cast_at=vote.cast_at,
    )


@router.get("/{competition_id}/votes/total", response_model=CompetitionTotalResponse)
async def get_total_votes(
    competition_id: int,
    service: Annotated[VoteCastingService, Depends(get_casting_service)],
) -> CompetitionTotalResponse:
    """Total votes in a competition, split by source."""
    breakdown = await service.get_vote_breakdown(competition_id)
    return CompetitionTotalResponse(competition_id=competition_id, **breakdown.to_dict())


@router.get("/{competition_id}/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    competition_id: int,
    service: Annotated[VoteCastingService, Depends(get_casting_service)],
) -> LeaderboardResponse:
    """Contestants ranked by votes, with each one's share of the total."""
    leaderboard = await service.get_leaderboard(competition_id)
    return LeaderboardResponse(
        competition_id=leaderboard.competition_id,
        total_votes=leaderboard.total_votes,
        leaderboard=[
            LeaderboardEntryResponse(
                rank=entry.rank,
                contestant_id=entry.contestant_id,
                talent_profile_id=entry.talent_profile_id,
                display_name=entry.display_name,
                vote_count=entry.vote_count,
                vote_percentage=entry.vote_percentage,
            )
            for entry in leaderboard.entries
        ],
    )


@router.get("/{competition_id}/contestants/{contestant_id}/votes", response_model=VoteCountResponse)
async def get_contestant_votes(
    competition_id: int,
    contestant_id: int,
    service: Annotated[VoteCastingService, Depends(get_casting_service)],
) -> VoteCountResponse:
    """Votes for one contestant in a competition, split by source."""
    breakdown = await service.get_vote_breakdown(competition_id, contestant_id)
    return VoteCountResponse(
        competition_id=competition_id,
        contestant_id=contestant_id,
        **breakdown.to_dict(),
    )
