"""
Sequencer Service

Issues strictly increasing integer identifiers on top of a document store
that has no auto-increment. Each namespace owns one counter document whose
value is the last id handed out; the next id is produced by the store's
atomic increment, so concurrent callers across replicas never see the same
value.
"""

import structlog

from core.config import settings
from db.cosmos_session import COUNTERS_CONTAINER
from db.retry import run_with_retry
from db.store import DocumentExistsError, DocumentNotFoundError, DocumentStore
from models.documents import CounterDocument

logger = structlog.get_logger(__name__)

# Namespaces in use
VOTES = "votes"
CONTESTANTS = "contestants"
VOTE_PURCHASES = "vote_purchases"
COMPETITIONS = "competitions"


class Sequencer:
    """
    Per-namespace id generator.

    Usage:
        sequencer = Sequencer(store)
        vote_id = await sequencer.next_id(VOTES)
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    async def next_id(self, namespace: str) -> int:
        """
        Return the next id for a namespace.

        The first call for a namespace creates its counter at 1. Losing the
        create race to another caller means that caller now owns 1, so the
        whole operation is retried and lands on the increment path.

        Raises:
            TransactionConflict: if contention persisted for SEQUENCER_MAX_ATTEMPTS.
        """
        if not namespace:
            raise ValueError("Sequencer namespace must not be empty")

        async def issue() -> int:
            try:
                data = await self.store.increment(COUNTERS_CONTAINER, namespace, namespace, {"value": 1})
                return int(data["value"])
            except DocumentNotFoundError:
                pass

            try:
                await self.store.create(COUNTERS_CONTAINER, CounterDocument(id=namespace, value=1).to_document())
            except DocumentExistsError:
                logger.debug("sequencer_create_race", namespace=namespace)
                data = await self.store.increment(COUNTERS_CONTAINER, namespace, namespace, {"value": 1})
                return int(data["value"])

            logger.info("sequencer_namespace_created", namespace=namespace)
            return 1

        return await run_with_retry(
            f"next_id({namespace})",
            issue,
            max_attempts=settings.SEQUENCER_MAX_ATTEMPTS,
        )

    async def current(self, namespace: str) -> int:
        """Last id issued for a namespace (0 if none yet)."""
        data = await self.store.read(COUNTERS_CONTAINER, namespace, partition_key=namespace)
        return int(data["value"]) if data else 0
