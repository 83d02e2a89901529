"""
Document store lifecycle.

Selects the store backend from settings and keeps a single instance for the
process, the same way the Cosmos client itself is a singleton.
"""

import logging

from core.config import settings
from db.store import DocumentStore

logger = logging.getLogger(__name__)

_store: DocumentStore | None = None


def create_store() -> DocumentStore:
    """Instantiate the configured store backend."""
    backend = settings.STORE_BACKEND.lower()

    if backend == "memory":
        from db.memory_store import InMemoryDocumentStore

        return InMemoryDocumentStore()

    if backend == "cosmos":
        if not settings.is_cosmos_configured:
            raise ValueError(
                "STORE_BACKEND is 'cosmos' but neither AZURE_COSMOS_ENDPOINT "
                "nor AZURE_COSMOS_CONNECTION_STRING is set"
            )
        from db.cosmos_store import CosmosDocumentStore

        return CosmosDocumentStore()

    raise ValueError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND}")


def get_store() -> DocumentStore:
    """Get the process-wide store, creating it on first use."""
    global _store

    if _store is None:
        _store = create_store()
        logger.info(f"Initialized {type(_store).__name__}")
    return _store


def set_store(store: DocumentStore | None) -> None:
    """Replace the process-wide store (tests and scripts)."""
    global _store
    _store = store


async def init_db() -> None:
    """Initialize the store at application startup."""
    get_store()


async def close_db() -> None:
    """Close store connections at application shutdown."""
    global _store

    if _store is not None:
        await _store.close()
        _store = None
        logger.info("Document store closed")
