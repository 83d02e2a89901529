"""
Competition directory repository.

Competitions and contestants are owned by the platform's CRUD layer. The
ledger only reads them to validate casts and never writes them.
"""

import logging
from typing import Optional

from db.cosmos_session import COMPETITIONS_CONTAINER, CONTESTANTS_CONTAINER
from db.store import DocumentStore, eq
from models.documents import CompetitionDocument, ContestantDocument

logger = logging.getLogger(__name__)


class CompetitionRepository:
    """Read-only access to competitions and their contestants."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def get_competition(self, competition_id: int) -> Optional[CompetitionDocument]:
        """Get a competition by ID (direct point read)."""
        key = str(competition_id)
        data = await self.store.read(COMPETITIONS_CONTAINER, key, partition_key=key)
        if data is None:
            return None
        return CompetitionDocument(**data)

    async def get_contestant(self, contestant_id: int) -> Optional[ContestantDocument]:
        key = str(contestant_id)
        data = await self.store.read(CONTESTANTS_CONTAINER, key, partition_key=key)
        if data is None:
            return None
        return ContestantDocument(**data)

    async def list_contestants(self, competition_id: int) -> list[ContestantDocument]:
        rows = await self.store.query(CONTESTANTS_CONTAINER, [eq("competition_id", competition_id)])
        return [ContestantDocument(**r) for r in rows]
