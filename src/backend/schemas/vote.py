"""
Vote-related Pydantic schemas.

Request bodies and responses for casting votes and reading counts.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from core.security import normalize_referral_code
from models.documents import VoteSource


class VoteCreate(BaseModel):
    """Schema for casting a vote. The voter's IP comes from the request."""

    contestant_id: int
    source: VoteSource = VoteSource.ONLINE
    venue_token: Optional[str] = Field(
        None, max_length=128, description="Identity token from a venue terminal (in-person votes)"
    )
    referral_code: Optional[str] = Field(None, max_length=32)

    @field_validator("referral_code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        return normalize_referral_code(v)


class VoteResponse(BaseModel):
    """Response after successfully casting a vote."""

    success: bool
    message: str
    vote_id: int
    competition_id: int
    contestant_id: int
    source: VoteSource
    cast_at: datetime


class VoteCountResponse(BaseModel):
    """Vote counts for one contestant in a competition."""

    competition_id: int
    contestant_id: int
    online: int
    in_person: int
    total: int


class CompetitionTotalResponse(BaseModel):
    competition_id: int
    online: int
    in_person: int
    total: int


class LeaderboardEntryResponse(BaseModel):
    rank: int
    contestant_id: int
    talent_profile_id: Optional[int] = None
    display_name: Optional[str] = None
    vote_count: int
    vote_percentage: float


class LeaderboardResponse(BaseModel):
    competition_id: int
    total_votes: int
    leaderboard: list[LeaderboardEntryResponse]


class PlatformVotesResponse(BaseModel):
    total_votes: int


class ReconciliationEntry(BaseModel):
    """Before/after totals of one repaired aggregate."""

    competition_id: int
    contestant_id: int
    before_total: int
    after_total: int
    online_count: int
    in_person_count: int
    drift: int


class ReconciliationResponse(BaseModel):
    competition_id: int
    aggregates_checked: int
    aggregates_repaired: int
    results: list[ReconciliationEntry]


class SyncCountRequest(BaseModel):
    authoritative_total: Optional[int] = Field(None, ge=0)


class TeardownResponse(BaseModel):
    competition_id: int
    votes_deleted: int
    vote_counts_deleted: int
    vote_quotas_deleted: int
