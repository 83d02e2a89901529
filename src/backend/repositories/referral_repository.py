"""
Referral code repository.

Stores referral codes, their aggregate stats, and the set of voter
identities already seen per code. The voter set is kept as one small marker
document per (code, hashed identity) in a container partitioned by code, so
membership is a point operation instead of a scan of an ever-growing array.
"""

import logging
from typing import Optional

from db.cosmos_session import (
    REFERRAL_CODES_CONTAINER,
    REFERRAL_STATS_CONTAINER,
    REFERRAL_VOTERS_CONTAINER,
)
from db.store import (
    DocumentExistsError,
    DocumentNotFoundError,
    DocumentStore,
    eq,
    is_null,
)
from models.documents import (
    ReferralCodeDocument,
    ReferralStatsDocument,
    ReferralVoterDocument,
    format_timestamp,
    referral_voter_id,
    utc_now,
)

logger = logging.getLogger(__name__)


class ReferralRepository:
    """Repository for referral codes, stats and voter sets."""

    def __init__(self, store: DocumentStore):
        self.store = store

    # ========================================================================
    # Codes
    # ========================================================================

    async def get_code(self, code: str) -> Optional[ReferralCodeDocument]:
        data = await self.store.read(REFERRAL_CODES_CONTAINER, code, partition_key=code)
        if data is None:
            return None
        return ReferralCodeDocument(**data)

    async def code_exists(self, code: str) -> bool:
        return await self.get_code(code) is not None

    async def get_unscoped_code_by_owner(self, owner_id: str) -> Optional[ReferralCodeDocument]:
        """Get the owner's general-purpose (not competition-scoped) code."""
        rows = await self.store.query(
            REFERRAL_CODES_CONTAINER,
            [eq("owner_id", owner_id), is_null("competition_id"), is_null("contestant_id")],
            limit=1,
        )
        if not rows:
            return None
        return ReferralCodeDocument(**rows[0])

    async def list_codes_by_owner(self, owner_id: str) -> list[ReferralCodeDocument]:
        rows = await self.store.query(
            REFERRAL_CODES_CONTAINER,
            [eq("owner_id", owner_id)],
            order_by="created_at",
        )
        return [ReferralCodeDocument(**r) for r in rows]

    async def list_codes(self) -> list[ReferralCodeDocument]:
        rows = await self.store.query(REFERRAL_CODES_CONTAINER, order_by="created_at")
        return [ReferralCodeDocument(**r) for r in rows]

    async def create_code(self, referral: ReferralCodeDocument) -> ReferralStatsDocument:
        """
        Create a code together with its zeroed stats document.

        If the stats document cannot be written the code is removed again,
        so a code never exists without its stats.

        Raises:
            DocumentExistsError: if the code value is already taken.
        """
        stats = ReferralStatsDocument(
            id=referral.code,
            code=referral.code,
            owner_id=referral.owner_id,
            owner_type=referral.owner_type,
            owner_name=referral.owner_name,
        )

        await self.store.create(REFERRAL_CODES_CONTAINER, referral.to_document())
        try:
            await self.store.create(REFERRAL_STATS_CONTAINER, stats.to_document())
        except Exception:
            logger.error(f"Failed to create stats for referral code {referral.code}; removing code")
            await self.store.delete(REFERRAL_CODES_CONTAINER, referral.code, partition_key=referral.code)
            raise

        return stats

    async def delete_code(self, code: str) -> bool:
        """
        Delete a code, its stats and its voter set.

        Stats and voter markers go first so an interrupted delete never
        leaves stats behind for a code that no longer exists.
        """
        markers = await self.store.query(REFERRAL_VOTERS_CONTAINER, [eq("code", code)], partition_key=code)
        for marker in markers:
            await self.store.delete(REFERRAL_VOTERS_CONTAINER, marker["id"], partition_key=code)

        try:
            await self.store.delete(REFERRAL_STATS_CONTAINER, code, partition_key=code)
        except DocumentNotFoundError:
            logger.warning(f"Referral code {code} had no stats document")

        try:
            await self.store.delete(REFERRAL_CODES_CONTAINER, code, partition_key=code)
        except DocumentNotFoundError:
            return False

        logger.info(f"Deleted referral code {code} ({len(markers)} voter markers)")
        return True

    # ========================================================================
    # Stats
    # ========================================================================

    async def get_stats(self, code: str) -> Optional[ReferralStatsDocument]:
        data = await self.store.read(REFERRAL_STATS_CONTAINER, code, partition_key=code)
        if data is None:
            return None
        return ReferralStatsDocument(**data)

    async def list_stats(self) -> list[ReferralStatsDocument]:
        rows = await self.store.query(
            REFERRAL_STATS_CONTAINER,
            order_by="total_votes_driven",
            descending=True,
        )
        return [ReferralStatsDocument(**r) for r in rows]

    async def increment_stats(self, code: str, votes: int, new_voters: int) -> ReferralStatsDocument:
        """
        Atomically add to a code's counters.

        Raises:
            DocumentNotFoundError: if the code has no stats document.
        """
        deltas = {"total_votes_driven": votes}
        if new_voters:
            deltas["unique_voters"] = new_voters
        data = await self.store.increment(
            REFERRAL_STATS_CONTAINER,
            code,
            code,
            deltas,
            {"updated_at": format_timestamp(utc_now())},
        )
        return ReferralStatsDocument(**data)

    # ========================================================================
    # Voter Set
    # ========================================================================

    async def add_voter(self, code: str, identity_hash: str) -> bool:
        """
        Add a hashed identity to a code's voter set.

        Returns True if the identity was new, False if it was already a member.
        The create itself is the membership test, so two concurrent first
        votes from one identity can only count once.
        """
        marker = ReferralVoterDocument(
            id=referral_voter_id(code, identity_hash),
            code=code,
            identity_hash=identity_hash,
        )
        try:
            await self.store.create(REFERRAL_VOTERS_CONTAINER, marker.to_document())
        except DocumentExistsError:
            return False
        return True
