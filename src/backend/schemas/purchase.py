"""Vote purchase schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from core.security import normalize_referral_code


class PurchaseCreate(BaseModel):
    """
    Request to buy a vote package.

    Signed-in callers pay from their account; guests supply an email.
    """

    competition_id: int
    contestant_id: int
    package_id: str = Field(..., min_length=1, max_length=64)
    guest_email: Optional[EmailStr] = None
    guest_name: Optional[str] = Field(None, max_length=200)
    referral_code: Optional[str] = Field(None, max_length=32)

    @field_validator("referral_code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        return normalize_referral_code(v)


class PurchaseResponse(BaseModel):
    purchase_id: int
    competition_id: int
    contestant_id: int
    vote_count: int
    votes_cast: int
    amount_charged: int  # Cents, tax included
    subtotal_cents: int
    tax_cents: int
    payment_reference: Optional[str] = None
    purchased_at: datetime


class PurchaseRecordResponse(BaseModel):
    """A recorded purchase, as listed for its payer or an admin."""

    id: int
    competition_id: int
    contestant_id: int
    vote_count: int
    amount_charged: int
    subtotal_cents: int
    tax_cents: int
    payment_reference: Optional[str] = None
    referral_code: Optional[str] = None
    purchased_at: datetime

    model_config = {"from_attributes": True}


class GuestLookupRequest(BaseModel):
    """Find a guest's purchases by the details given at checkout."""

    email: EmailStr
    name: str = Field(..., min_length=1, max_length=200)


class VotePackageSchema(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=100)
    vote_count: int = Field(..., gt=0)
    bonus_votes: int = Field(0, ge=0)
    price_cents: int = Field(..., ge=0)
    is_active: bool = True

    model_config = {"from_attributes": True}


class VotePackagesResponse(BaseModel):
    """Packages on sale and the sales tax added at checkout."""

    packages: list[VotePackageSchema]
    sales_tax_percent: float


class PlatformSettingsUpdate(BaseModel):
    vote_packages: list[VotePackageSchema] = Field(..., min_length=1)
    sales_tax_percent: float = Field(0.0, ge=0, le=100)
