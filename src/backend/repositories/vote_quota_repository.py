"""
Daily free-vote quota repository.

One document per (competition, voter identity, vote day). Taking a vote from
the quota is a single conditional increment, so the daily limit holds under
any number of concurrent casts from the same voter.
"""

import logging
from typing import Optional

from db.cosmos_session import VOTE_QUOTAS_CONTAINER
from db.store import DocumentStore, eq, lt
from models.documents import VoteQuotaDocument, format_timestamp, utc_now

logger = logging.getLogger(__name__)


class VoteQuotaRepository:
    """Repository for per-day free-vote quotas."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def get(self, quota_id: str) -> Optional[VoteQuotaDocument]:
        data = await self.store.read(VOTE_QUOTAS_CONTAINER, quota_id, partition_key=quota_id)
        if data is None:
            return None
        return VoteQuotaDocument(**data)

    async def create(self, quota: VoteQuotaDocument) -> VoteQuotaDocument:
        """Create a quota. Raises DocumentExistsError if another writer got there first."""
        await self.store.create(VOTE_QUOTAS_CONTAINER, quota.to_document())
        return quota

    async def take(self, quota_id: str, limit: int) -> int:
        """
        Take one vote from a quota if fewer than `limit` are used.

        Returns:
            Votes used after this one.

        Raises:
            DocumentNotFoundError: if the quota does not exist yet.
            ConditionNotMetError: if the quota is already used up.
        """
        data = await self.store.increment(
            VOTE_QUOTAS_CONTAINER,
            quota_id,
            quota_id,
            {"used": 1},
            {"updated_at": format_timestamp(utc_now())},
            conditions=[lt("used", limit)],
        )
        return int(data["used"])

    async def delete_for_competition(self, competition_id: int) -> int:
        """Delete every quota of a competition (teardown only)."""
        rows = await self.store.query(VOTE_QUOTAS_CONTAINER, [eq("competition_id", competition_id)])
        for row in rows:
            await self.store.delete(VOTE_QUOTAS_CONTAINER, row["id"], partition_key=row["id"])

        if rows:
            logger.info(f"Deleted {len(rows)} vote quotas for competition {competition_id}")
        return len(rows)
