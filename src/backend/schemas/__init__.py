"""Schemas module initialization."""

from schemas.purchase import (
    GuestLookupRequest,
    PlatformSettingsUpdate,
    PurchaseCreate,
    PurchaseRecordResponse,
    PurchaseResponse,
    VotePackageSchema,
    VotePackagesResponse,
)
from schemas.referral import ReferralCodeCreate, ReferralCodeResponse, ReferralStatsResponse
from schemas.vote import (
    LeaderboardResponse,
    ReconciliationResponse,
    VoteCountResponse,
    VoteCreate,
    VoteResponse,
)

__all__ = [
    "VoteCreate",
    "VoteResponse",
    "VoteCountResponse",
    "LeaderboardResponse",
    "ReconciliationResponse",
    "ReferralCodeCreate",
    "ReferralCodeResponse",
    "ReferralStatsResponse",
    "PurchaseCreate",
    "PurchaseResponse",
    "PurchaseRecordResponse",
    "GuestLookupRequest",
    "VotePackageSchema",
    "VotePackagesResponse",
    "PlatformSettingsUpdate",
]
