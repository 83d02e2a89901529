"""Referral code schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from models.documents import OwnerType


class ReferralCodeCreate(BaseModel):
    """
    Request to issue a referral code.

    Owner fields default to the caller. Admins may issue codes for other
    owners, including custom (non-account) owners.
    """

    owner_id: Optional[str] = Field(None, max_length=128)
    owner_type: Optional[OwnerType] = None
    owner_name: str = Field(..., min_length=1, max_length=200)
    owner_email: Optional[EmailStr] = None
    talent_profile_id: Optional[int] = None
    competition_id: Optional[int] = None
    contestant_id: Optional[int] = None
    skip_duplicate_check: bool = False


class ReferralCodeResponse(BaseModel):
    code: str
    owner_id: str
    owner_type: OwnerType
    owner_name: str
    owner_email: Optional[str] = None
    talent_profile_id: Optional[int] = None
    competition_id: Optional[int] = None
    contestant_id: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ReferralStatsResponse(BaseModel):
    code: str
    owner_id: str
    owner_type: OwnerType
    owner_name: str
    total_votes_driven: int
    unique_voters: int
    updated_at: datetime

    model_config = {"from_attributes": True}
