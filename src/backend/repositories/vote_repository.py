"""
Vote log repository.

The vote log is append-only and is the source of truth for every count in
the system. Partition key is competition_id for efficient per-competition
queries.
"""

import logging
from datetime import datetime
from typing import Optional

from db.cosmos_session import VOTES_CONTAINER
from db.store import Condition, DocumentStore, eq, gte, is_null
from models.documents import VoteDocument, VoteSource, format_timestamp

logger = logging.getLogger(__name__)

# Vote fields that can identify a voter for rate limiting
IDENTITY_FIELDS = ("voter_ip", "account_id", "venue_token")


class VoteRepository:
    """
    Repository for the vote log.

    Votes are never updated. They are only deleted when their whole
    competition is torn down.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def append(self, vote: VoteDocument) -> VoteDocument:
        """Append a vote. This write is the commit point of a cast."""
        await self.store.create(VOTES_CONTAINER, vote.to_document())
        logger.debug(f"Appended vote {vote.id} for contestant {vote.contestant_id} in competition {vote.competition_id}")
        return vote

    async def delete_for_competition(self, competition_id: int) -> int:
        """Delete every vote of a competition (teardown only). Returns the number deleted."""
        rows = await self.store.query(
            VOTES_CONTAINER,
            [eq("competition_id", competition_id)],
            partition_key=competition_id,
        )
        for row in rows:
            await self.store.delete(VOTES_CONTAINER, row["id"], partition_key=competition_id)

        if rows:
            logger.info(f"Deleted {len(rows)} votes for competition {competition_id}")
        return len(rows)

    # ========================================================================
    # Count Operations
    # ========================================================================

    async def count_for_contestant(
        self,
        competition_id: int,
        contestant_id: int,
        source: Optional[VoteSource] = None,
    ) -> int:
        """Count votes for a contestant in a competition, optionally for one source."""
        conditions: list[Condition] = [
            eq("competition_id", competition_id),
            eq("contestant_id", contestant_id),
        ]
        if source is not None:
            conditions.append(eq("source", VoteSource(source).value))
        return await self.store.count(VOTES_CONTAINER, conditions, partition_key=competition_id)

    async def count_for_competition(self, competition_id: int) -> int:
        """Count every vote of a competition."""
        return await self.store.count(
            VOTES_CONTAINER,
            [eq("competition_id", competition_id)],
            partition_key=competition_id,
        )

    async def count_for_purchase(self, competition_id: int, purchase_id: int) -> int:
        """Count the votes a purchase produced."""
        return await self.store.count(
            VOTES_CONTAINER,
            [eq("competition_id", competition_id), eq("purchase_id", purchase_id)],
            partition_key=competition_id,
        )

    async def count_free_votes_since(
        self,
        competition_id: int,
        identity_field: str,
        identity: str,
        since: datetime,
    ) -> int:
        """
        Count free (unpurchased) votes cast by an identity since a point in time.

        Purchased votes never count against the daily cap.
        """
        _check_identity_field(identity_field)
        return await self.store.count(
            VOTES_CONTAINER,
            [
                eq("competition_id", competition_id),
                eq(identity_field, identity),
                gte("cast_at", format_timestamp(since)),
                is_null("purchase_id"),
            ],
            partition_key=competition_id,
        )

    # ========================================================================
    # Query Operations
    # ========================================================================

    async def list_for_contestant(self, competition_id: int, contestant_id: int) -> list[VoteDocument]:
        """Get all votes for a contestant in a competition."""
        rows = await self.store.query(
            VOTES_CONTAINER,
            [eq("competition_id", competition_id), eq("contestant_id", contestant_id)],
            partition_key=competition_id,
        )
        return [VoteDocument(**r) for r in rows]

    async def list_for_competition(self, competition_id: int) -> list[VoteDocument]:
        """Get all votes for a competition (for reconciliation and reports)."""
        rows = await self.store.query(
            VOTES_CONTAINER,
            [eq("competition_id", competition_id)],
            partition_key=competition_id,
            order_by="cast_at",
        )
        return [VoteDocument(**r) for r in rows]

    async def list_for_purchase(self, competition_id: int, purchase_id: int) -> list[VoteDocument]:
        """Get the votes a purchase produced."""
        rows = await self.store.query(
            VOTES_CONTAINER,
            [eq("competition_id", competition_id), eq("purchase_id", purchase_id)],
            partition_key=competition_id,
        )
        return [VoteDocument(**r) for r in rows]


def _check_identity_field(identity_field: str) -> None:
    if identity_field not in IDENTITY_FIELDS:
        raise ValueError(f"Unknown identity field: {identity_field}")
