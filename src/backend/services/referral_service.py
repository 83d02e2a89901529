"""
Referral Attribution Service

Issues referral codes to talents, hosts, admins or custom owners and
attributes votes to them. Each code tracks how many votes it drove and how
many distinct voters those votes came from; voter identities are only ever
stored as keyed hashes.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from core.config import settings
from core.exceptions import ReferralCodeNotFound, TransactionConflict
from core.security import generate_referral_code, hash_voter_identity, normalize_referral_code
from db.retry import run_with_retry
from db.store import DocumentExistsError
from models.documents import (
    OwnerType,
    ReferralCodeDocument,
    ReferralStatsDocument,
)
from repositories.provider import ReferralRepositoryProtocol

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReferralScope:
    """Restricts a code to one competition and/or contestant."""

    competition_id: Optional[int] = None
    contestant_id: Optional[int] = None


class ReferralService:
    """Service for referral code lifecycle and vote attribution."""

    def __init__(self, referrals: ReferralRepositoryProtocol):
        self.referrals = referrals

    # =========================================================================
    # Codes
    # =========================================================================

    async def generate_code(
        self,
        owner_id: str,
        owner_type: OwnerType | str,
        owner_name: str,
        scoping: Optional[ReferralScope] = None,
        talent_profile_id: Optional[int] = None,
        owner_email: Optional[str] = None,
        skip_duplicate_check: bool = False,
    ) -> ReferralCodeDocument:
        """
        Issue a referral code for an owner.

        Unscoped codes are idempotent: an owner who already holds one gets it
        back. Scoped codes and skip_duplicate_check always create a new code.

        Raises:
            TransactionConflict: if no free code value was found within
                REFERRAL_CODE_MAX_ATTEMPTS tries.
        """
        owner_type = OwnerType(owner_type)
        scoped = scoping is not None and (
            scoping.competition_id is not None or scoping.contestant_id is not None
        )

        if not scoped and not skip_duplicate_check:
            existing = await self.referrals.get_unscoped_code_by_owner(owner_id)
            if existing:
                logger.debug("referral_code_reused", owner_id=owner_id, code=existing.code)
                return existing

        attempts = settings.REFERRAL_CODE_MAX_ATTEMPTS
        for _ in range(attempts):
            code = generate_referral_code(settings.REFERRAL_CODE_BYTES)
            if await self.referrals.code_exists(code):
                logger.debug("referral_code_collision", code=code)
                continue

            referral = ReferralCodeDocument(
                id=code,
                code=code,
                owner_id=owner_id,
                owner_type=owner_type,
                owner_name=owner_name,
                owner_email=owner_email,
                talent_profile_id=talent_profile_id,
                competition_id=scoping.competition_id if scoping else None,
                contestant_id=scoping.contestant_id if scoping else None,
            )
            try:
                await self.referrals.create_code(referral)
            except DocumentExistsError:
                # Taken between the existence check and the insert
                logger.debug("referral_code_collision", code=code)
                continue

            logger.info(
                "referral_code_created",
                code=code,
                owner_id=owner_id,
                owner_type=owner_type.value,
                scoped=scoped,
            )
            return referral

        raise TransactionConflict("create referral code", attempts)

    async def get_code(self, code: str) -> ReferralCodeDocument:
        code = normalize_referral_code(code)
        referral = await self.referrals.get_code(code)
        if referral is None:
            raise ReferralCodeNotFound(code)
        return referral

    async def get_code_by_owner(self, owner_id: str) -> Optional[ReferralCodeDocument]:
        """The owner's unscoped code, if they have one."""
        return await self.referrals.get_unscoped_code_by_owner(owner_id)

    async def list_codes(self, owner_id: Optional[str] = None) -> list[ReferralCodeDocument]:
        if owner_id:
            return await self.referrals.list_codes_by_owner(owner_id)
        return await self.referrals.list_codes()

    async def delete_code(self, code: str) -> None:
        """
        Delete a code with its stats and voter set.

        Raises:
            ReferralCodeNotFound: if the code does not exist.
        """
        code = normalize_referral_code(code)
        if await self.referrals.get_code(code) is None:
            raise ReferralCodeNotFound(code)
        if not await self.referrals.delete_code(code):
            raise ReferralCodeNotFound(code)
        logger.info("referral_code_deleted", code=code)

    # =========================================================================
    # Stats and Attribution
    # =========================================================================

    async def get_stats(self, code: str) -> ReferralStatsDocument:
        code = normalize_referral_code(code)
        stats = await self.referrals.get_stats(code)
        if stats is None:
            raise ReferralCodeNotFound(code)
        return stats

    async def list_stats(self) -> list[ReferralStatsDocument]:
        """Stats of every code, most votes driven first."""
        return await self.referrals.list_stats()

    async def track_referral_vote(self, code: str, voter_identity: str, count: int = 1) -> bool:
        """
        Attribute `count` votes from one voter to a referral code.

        Codes match case-insensitively. Unknown codes are ignored. The voter
        is counted as unique only the first time their identity is seen for
        this code.

        Returns:
            True if the votes were attributed, False if the code is unknown.
        """
        if count <= 0:
            raise ValueError("Referral vote count must be positive")

        code = normalize_referral_code(code)
        stats = await self.referrals.get_stats(code) if code else None
        if stats is None:
            logger.debug("referral_code_unknown", code=code)
            return False

        identity_hash = hash_voter_identity(voter_identity, scope=code)
        is_new_voter = await self.referrals.add_voter(code, identity_hash)

        await run_with_retry(
            f"increment referral stats {code}",
            lambda: self.referrals.increment_stats(code, count, 1 if is_new_voter else 0),
        )
        logger.debug("referral_vote_tracked", code=code, votes=count, new_voter=is_new_voter)
        return True
