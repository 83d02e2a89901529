"""
Repository provider for dependency injection.

This module provides a unified interface for accessing repositories
on top of the process-wide document store.

Usage:
    from repositories.provider import get_referral_repository

    # In FastAPI dependencies:
    async def get_referral_service(
        referrals: ReferralRepository = Depends(get_referral_repository),
    ):
        return ReferralService(referrals)
"""

from typing import Protocol, runtime_checkable

from db.session import get_store
from repositories.referral_repository import ReferralRepository

# =============================================================================
# Repository Protocols (Interfaces)
# =============================================================================


@runtime_checkable
class ReferralRepositoryProtocol(Protocol):
    """Protocol defining referral code operations."""

    async def get_code(self, code: str): ...
    async def code_exists(self, code: str) -> bool: ...
    async def get_unscoped_code_by_owner(self, owner_id: str): ...
    async def list_codes_by_owner(self, owner_id: str): ...
    async def list_codes(self): ...
    async def create_code(self, referral): ...
    async def delete_code(self, code: str) -> bool: ...
    async def get_stats(self, code: str): ...
    async def list_stats(self): ...
    async def increment_stats(self, code: str, votes: int, new_voters: int): ...
    async def add_voter(self, code: str, identity_hash: str) -> bool: ...


# =============================================================================
# Repository Factory Functions
# =============================================================================


async def get_referral_repository() -> ReferralRepository:
    """Get the referral code repository."""
    return ReferralRepository(get_store())
