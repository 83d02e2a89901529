"""Document models module."""

from models.documents import (
    CallerLevel,
    CompetitionDocument,
    CompetitionStatus,
    ContestantDocument,
    CounterDocument,
    OwnerType,
    PlatformSettingsDocument,
    PurchaseDocument,
    ReferralCodeDocument,
    ReferralStatsDocument,
    ReferralVoterDocument,
    VoteCountDocument,
    VoteDocument,
    VotePackage,
    VoteQuotaDocument,
    VoteSource,
)

__all__ = [
    "CallerLevel",
    "CompetitionDocument",
    "CompetitionStatus",
    "ContestantDocument",
    "CounterDocument",
    "OwnerType",
    "PlatformSettingsDocument",
    "PurchaseDocument",
    "ReferralCodeDocument",
    "ReferralStatsDocument",
    "ReferralVoterDocument",
    "VoteCountDocument",
    "VoteDocument",
    "VotePackage",
    "VoteQuotaDocument",
    "VoteSource",
]
