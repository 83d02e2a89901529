"""
Aggregate vote counter repository.

One document per (competition, contestant) holding online, in-person and
total counts. Counters are a cache of the vote log and are only ever changed
through atomic increments, or overwritten wholesale by reconciliation.
"""

import logging
from typing import Optional

from db.cosmos_session import VOTE_COUNTS_CONTAINER
from db.retry import run_with_retry
from db.store import DocumentExistsError, DocumentNotFoundError, DocumentStore, eq
from models.documents import VoteCountDocument, format_timestamp, utc_now, vote_count_id

logger = logging.getLogger(__name__)


class VoteCountRepository:
    """Repository for per-contestant vote aggregates."""

    def __init__(self, store: DocumentStore):
        self.store = store

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get(self, competition_id: int, contestant_id: int) -> Optional[VoteCountDocument]:
        """Get the aggregate for a contestant in a competition (direct point read)."""
        doc_id = vote_count_id(competition_id, contestant_id)
        data = await self.store.read(VOTE_COUNTS_CONTAINER, doc_id, partition_key=doc_id)
        if data is None:
            return None
        return VoteCountDocument(**data)

    async def list_for_competition(self, competition_id: int) -> list[VoteCountDocument]:
        rows = await self.store.query(VOTE_COUNTS_CONTAINER, [eq("competition_id", competition_id)])
        return [VoteCountDocument(**r) for r in rows]

    async def list_for_contestant(self, contestant_id: int) -> list[VoteCountDocument]:
        """Get a contestant's aggregates across every competition they entered."""
        rows = await self.store.query(VOTE_COUNTS_CONTAINER, [eq("contestant_id", contestant_id)])
        return [VoteCountDocument(**r) for r in rows]

    async def list_all(self) -> list[VoteCountDocument]:
        """
        Get every aggregate on the platform.

        Note: This is a cross-partition query - use sparingly.
        """
        rows = await self.store.query(VOTE_COUNTS_CONTAINER)
        return [VoteCountDocument(**r) for r in rows]

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def increment(
        self,
        competition_id: int,
        contestant_id: int,
        online: int = 0,
        in_person: int = 0,
    ) -> VoteCountDocument:
        """
        Atomically add votes to a contestant's aggregate.

        Creates the document pre-populated with the incoming counts when it
        does not exist yet. A lost create race falls back to an increment of
        the document the other writer created.
        """
        if online < 0 or in_person < 0:
            raise ValueError("Vote counts can only grow through increment()")

        doc_id = vote_count_id(competition_id, contestant_id)
        deltas = {"total_count": online + in_person}
        if online:
            deltas["online_count"] = online
        if in_person:
            deltas["in_person_count"] = in_person

        async def apply() -> dict:
            assignments = {"updated_at": format_timestamp(utc_now())}
            try:
                return await self.store.increment(
                    VOTE_COUNTS_CONTAINER, doc_id, doc_id, deltas, assignments
                )
            except DocumentNotFoundError:
                pass

            fresh = VoteCountDocument(
                id=doc_id,
                competition_id=competition_id,
                contestant_id=contestant_id,
                online_count=online,
                in_person_count=in_person,
                total_count=online + in_person,
            )
            try:
                return await self.store.create(VOTE_COUNTS_CONTAINER, fresh.to_document())
            except DocumentExistsError:
                logger.debug(f"Lost create race for vote count {doc_id}; incrementing instead")
                return await self.store.increment(
                    VOTE_COUNTS_CONTAINER, doc_id, doc_id, deltas, assignments
                )

        data = await run_with_retry(f"increment vote count {doc_id}", apply)
        return VoteCountDocument(**data)

    async def overwrite(
        self,
        competition_id: int,
        contestant_id: int,
        online: int,
        in_person: int,
    ) -> VoteCountDocument:
        """Replace an aggregate with recomputed values (reconciliation only)."""
        doc = VoteCountDocument(
            id=vote_count_id(competition_id, contestant_id),
            competition_id=competition_id,
            contestant_id=contestant_id,
            online_count=online,
            in_person_count=in_person,
            total_count=online + in_person,
        )
        await self.store.upsert(VOTE_COUNTS_CONTAINER, doc.to_document())
        return doc

    async def delete_for_competition(self, competition_id: int) -> int:
        """Delete every aggregate of a competition (teardown only)."""
        docs = await self.list_for_competition(competition_id)
        for doc in docs:
            await self.store.delete(VOTE_COUNTS_CONTAINER, doc.id, partition_key=doc.id)

        if docs:
            logger.info(f"Deleted {len(docs)} vote counts for competition {competition_id}")
        return len(docs)
