"""
Azure Cosmos DB session management for the vote ledger.

Uses the async Cosmos DB SDK with DefaultAzureCredential for RBAC
authentication, or a connection string for the local emulator.
"""

import logging
from typing import Any

from azure.cosmos.aio import ContainerProxy, CosmosClient, DatabaseProxy
from azure.identity.aio import DefaultAzureCredential

from core.config import settings

logger = logging.getLogger(__name__)

# Container names
COMPETITIONS_CONTAINER = "competitions"
CONTESTANTS_CONTAINER = "contestants"
COUNTERS_CONTAINER = "counters"
VOTES_CONTAINER = "votes"
VOTE_COUNTS_CONTAINER = "vote-counts"
VOTE_PURCHASES_CONTAINER = "vote-purchases"
REFERRAL_CODES_CONTAINER = "referral-codes"
REFERRAL_STATS_CONTAINER = "referral-stats"
REFERRAL_VOTERS_CONTAINER = "referral-voters"
VOTE_QUOTAS_CONTAINER = "vote-quotas"
PLATFORM_SETTINGS_CONTAINER = "platform-settings"

ALL_CONTAINERS = (
    COMPETITIONS_CONTAINER,
    CONTESTANTS_CONTAINER,
    COUNTERS_CONTAINER,
    VOTES_CONTAINER,
    VOTE_COUNTS_CONTAINER,
    VOTE_PURCHASES_CONTAINER,
    REFERRAL_CODES_CONTAINER,
    REFERRAL_STATS_CONTAINER,
    REFERRAL_VOTERS_CONTAINER,
    VOTE_QUOTAS_CONTAINER,
    PLATFORM_SETTINGS_CONTAINER,
)

# Partition key field per container. Containers not listed use /id.
PARTITION_KEY_FIELDS: dict[str, str] = {
    VOTES_CONTAINER: "competition_id",
    REFERRAL_VOTERS_CONTAINER: "code",
}


def partition_key_field(container_name: str) -> str:
    """Name of the document field holding the partition key for a container."""
    return PARTITION_KEY_FIELDS.get(container_name, "id")


# Global client instances (lazy-initialized)
_cosmos_client: CosmosClient | None = None
_database: DatabaseProxy | None = None
_credential: DefaultAzureCredential | None = None


async def get_cosmos_client() -> CosmosClient:
    """
    Get or create the Cosmos DB client.

    Supports two authentication modes:
    1. Connection string (for local development with Cosmos DB Emulator)
    2. DefaultAzureCredential/RBAC (for Azure deployment)

    The client is singleton and reused across requests.
    """
    global _cosmos_client, _credential

    if _cosmos_client is None:
        if settings.AZURE_COSMOS_CONNECTION_STRING:
            # Format: AccountEndpoint=https://...;AccountKey=...;
            conn_parts = dict(
                part.split("=", 1) for part in settings.AZURE_COSMOS_CONNECTION_STRING.split(";") if "=" in part
            )
            endpoint = conn_parts.get("AccountEndpoint", "")
            key = conn_parts.get("AccountKey", "")

            if not endpoint or not key:
                raise ValueError("AZURE_COSMOS_CONNECTION_STRING must contain AccountEndpoint and AccountKey")

            # The emulator uses a self-signed certificate
            _cosmos_client = CosmosClient(
                url=endpoint,
                credential=key,
                connection_verify=not settings.AZURE_COSMOS_DISABLE_SSL,
            )
            logger.info(
                f"Initialized Cosmos DB client for {endpoint} (connection string mode, "
                f"SSL verification: {not settings.AZURE_COSMOS_DISABLE_SSL})"
            )
        else:
            if not settings.AZURE_COSMOS_ENDPOINT:
                raise ValueError("Either AZURE_COSMOS_ENDPOINT or AZURE_COSMOS_CONNECTION_STRING must be set")

            _credential = DefaultAzureCredential()
            _cosmos_client = CosmosClient(
                url=settings.AZURE_COSMOS_ENDPOINT,
                credential=_credential,
            )
            logger.info(f"Initialized Cosmos DB client for {settings.AZURE_COSMOS_ENDPOINT} (RBAC mode)")

    return _cosmos_client


async def get_database() -> DatabaseProxy:
    """Get the Cosmos DB database proxy."""
    global _database

    if _database is None:
        client = await get_cosmos_client()
        _database = client.get_database_client(settings.AZURE_COSMOS_DATABASE)
        logger.info(f"Connected to database: {settings.AZURE_COSMOS_DATABASE}")

    return _database


async def get_container(container_name: str) -> ContainerProxy:
    """Get a container proxy for the specified container."""
    database = await get_database()
    return database.get_container_client(container_name)


async def close_cosmos() -> None:
    """
    Close Cosmos DB connections.

    Should be called during application shutdown.
    """
    global _cosmos_client, _database, _credential

    if _cosmos_client is not None:
        await _cosmos_client.close()
        _cosmos_client = None
        _database = None
        logger.info("Closed Cosmos DB client")

    if _credential is not None:
        await _credential.close()
        _credential = None


# ============================================================================
# Utility Functions for Common Operations
# ============================================================================


async def create_item(container_name: str, item: dict[str, Any]) -> dict[str, Any]:
    """Create a new item (must include 'id' and the partition key field)."""
    container = await get_container(container_name)
    return await container.create_item(body=item)


async def read_item(container_name: str, item_id: str, partition_key: Any) -> dict[str, Any]:
    """Read an item by ID and partition key. Raises CosmosResourceNotFoundError if absent."""
    container = await get_container(container_name)
    return await container.read_item(item=item_id, partition_key=partition_key)


async def upsert_item(container_name: str, item: dict[str, Any]) -> dict[str, Any]:
    """Create or update an item in the specified container."""
    container = await get_container(container_name)
    return await container.upsert_item(body=item)


async def delete_item(container_name: str, item_id: str, partition_key: Any) -> None:
    """Delete an item by ID and partition key."""
    container = await get_container(container_name)
    await container.delete_item(item=item_id, partition_key=partition_key)


async def patch_item(
    container_name: str,
    item_id: str,
    partition_key: Any,
    operations: list[dict[str, Any]],
    filter_predicate: str | None = None,
) -> dict[str, Any]:
    """
    Apply partial document update operations server-side.

    Cosmos DB executes all operations of one patch atomically on the single
    document, so `incr` operations never lose concurrent updates. With a
    filter_predicate the patch only applies if the document matches it;
    otherwise Cosmos DB answers 412 Precondition Failed.
    """
    container = await get_container(container_name)
    kwargs: dict[str, Any] = {}
    if filter_predicate:
        kwargs["filter_predicate"] = filter_predicate
    return await container.patch_item(
        item=item_id,
        partition_key=partition_key,
        patch_operations=operations,
        **kwargs,
    )


async def query_items(
    container_name: str,
    query: str,
    parameters: list[dict[str, Any]] | None = None,
    partition_key: Any | None = None,
    max_items: int | None = None,
) -> list[Any]:
    """
    Query items using SQL-like syntax.

    Example:
        results = await query_items(
            'votes',
            'SELECT * FROM c WHERE c.competition_id = @competition_id',
            parameters=[{'name': '@competition_id', 'value': 7}],
            partition_key=7,
        )
    """
    container = await get_container(container_name)

    # Cross-partition querying is enabled automatically when no partition_key is given
    query_kwargs: dict[str, Any] = {
        "query": query,
    }

    if parameters:
        query_kwargs["parameters"] = parameters

    if partition_key is not None:
        query_kwargs["partition_key"] = partition_key

    if max_items:
        query_kwargs["max_item_count"] = max_items

    items: list[Any] = []
    async for item in container.query_items(**query_kwargs):
        items.append(item)
        if max_items and len(items) >= max_items:
            break

    return items


async def query_count(
    container_name: str,
    query: str,
    parameters: list[dict[str, Any]] | None = None,
    partition_key: Any | None = None,
) -> int:
    """
    Execute a COUNT query and return the integer result.

    Cross-partition COUNT queries return one partial count per partition,
    so the results are summed.
    """
    results = await query_items(container_name, query, parameters, partition_key)
    return sum(int(r) for r in results if isinstance(r, (int, float)))
