"""Repository modules for document store access."""

from repositories.competition_repository import CompetitionRepository
from repositories.platform_settings_repository import PlatformSettingsRepository
from repositories.purchase_repository import PurchaseRepository
from repositories.referral_repository import ReferralRepository
from repositories.vote_count_repository import VoteCountRepository
from repositories.vote_quota_repository import VoteQuotaRepository
from repositories.vote_repository import VoteRepository

__all__ = [
    "CompetitionRepository",
    "PlatformSettingsRepository",
    "PurchaseRepository",
    "ReferralRepository",
    "VoteCountRepository",
    "VoteQuotaRepository",
    "VoteRepository",
]
