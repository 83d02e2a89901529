#!/usr/bin/env python3
"""
Initialize Cosmos DB Emulator with the StageVote database and containers.

This script creates the required database and containers in the local Cosmos DB Emulator.
Run this once after starting the emulator to set up the local development environment.

Prerequisites:
1. Install Cosmos DB Emulator: https://aka.ms/cosmosdb-emulator
2. Start the emulator (it runs on https://localhost:8081)
3. Run this script: python scripts/init-cosmos-emulator.py

The emulator uses a well-known key that is safe for local development only.
"""

import asyncio
import sys
from pathlib import Path

# Add backend to path
backend_path = Path(__file__).parent.parent / "src" / "backend"
sys.path.insert(0, str(backend_path))

from azure.cosmos import PartitionKey  # noqa: E402
from azure.cosmos.aio import CosmosClient  # noqa: E402

from db.cosmos_session import ALL_CONTAINERS, partition_key_field  # noqa: E402

# Cosmos DB Emulator connection details (well-known credentials)
EMULATOR_ENDPOINT = "https://localhost:8081"
EMULATOR_KEY = "C2y6yDjf5/R+ob0N8A7Cgv30VRDJIWEHLM+4QDU5DE2nQ9nDuVTqobD4b8mGGyPMbIZnqyMsEcaGQy67XIw/Jw=="
DATABASE_NAME = "stagevote"


async def init_emulator():
    """Create the database and every ledger container with its partition key."""
    print(f"Connecting to Cosmos DB Emulator at {EMULATOR_ENDPOINT}...")

    # Emulator uses a self-signed certificate
    client = CosmosClient(
        url=EMULATOR_ENDPOINT,
        credential=EMULATOR_KEY,
        connection_verify=False,
    )

    try:
        database = await client.create_database_if_not_exists(id=DATABASE_NAME)
        print(f"Database '{DATABASE_NAME}' ready")

        for container_name in ALL_CONTAINERS:
            partition_key = f"/{partition_key_field(container_name)}"
            await database.create_container_if_not_exists(
                id=container_name,
                partition_key=PartitionKey(path=partition_key),
            )
            print(f"  Container '{container_name}' (partition: {partition_key})")

        print("\nCosmos DB Emulator initialization complete.")
        print("Set AZURE_COSMOS_CONNECTION_STRING and AZURE_COSMOS_DISABLE_SSL=true in src/backend/.env,")
        print("then start the API: cd src/backend && uvicorn main:app --reload")
    finally:
        await client.close()


if __name__ == "__main__":
    print("=" * 60)
    print("StageVote - Cosmos DB Emulator Initialization")
    print("=" * 60)
    asyncio.run(init_emulator())
