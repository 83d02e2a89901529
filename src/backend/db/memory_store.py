"""
In-memory implementation of the DocumentStore protocol.

Used for local development without the Cosmos DB emulator and as the
backend for service tests. Each operation runs under a single asyncio lock,
which gives the same per-document atomicity the production store offers.
"""

import asyncio
import copy
from typing import Any, Optional, Sequence

from db.store import (
    Condition,
    ConditionNotMetError,
    DocumentExistsError,
    DocumentNotFoundError,
    Operator,
)


def _matches(document: dict[str, Any], condition: Condition) -> bool:
    value = document.get(condition.field)

    if condition.op == Operator.IS_NULL:
        return value is None
    if condition.op == Operator.NOT_NULL:
        return value is not None
    if condition.op == Operator.EQ:
        return value == condition.value
    if condition.op == Operator.NE:
        return value != condition.value
    if condition.op == Operator.IN:
        return value in condition.value

    # Ordered comparisons never match missing fields, as in Cosmos DB SQL
    if value is None:
        return False
    if condition.op == Operator.GTE:
        return value >= condition.value
    if condition.op == Operator.LT:
        return value < condition.value
    raise ValueError(f"Unsupported operator: {condition.op}")


class InMemoryDocumentStore:
    """DocumentStore keeping documents in process memory, keyed by container and id."""

    def __init__(self) -> None:
        self._containers: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    def _container(self, name: str) -> dict[str, dict[str, Any]]:
        return self._containers.setdefault(name, {})

    async def create(self, container: str, document: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            docs = self._container(container)
            document_id = str(document["id"])
            if document_id in docs:
                raise DocumentExistsError(f"{container}/{document_id} already exists")
            docs[document_id] = copy.deepcopy(document)
            return copy.deepcopy(docs[document_id])

    async def read(self, container: str, document_id: str, partition_key: Any) -> Optional[dict[str, Any]]:
        async with self._lock:
            document = self._container(container).get(str(document_id))
            return copy.deepcopy(document) if document is not None else None

    async def upsert(self, container: str, document: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            docs = self._container(container)
            docs[str(document["id"])] = copy.deepcopy(document)
            return copy.deepcopy(document)

    async def delete(self, container: str, document_id: str, partition_key: Any) -> None:
        async with self._lock:
            docs = self._container(container)
            if str(document_id) not in docs:
                raise DocumentNotFoundError(f"{container}/{document_id} not found")
            del docs[str(document_id)]

    async def increment(
        self,
        container: str,
        document_id: str,
        partition_key: Any,
        deltas: dict[str, int],
        assignments: Optional[dict[str, Any]] = None,
        conditions: Sequence[Condition] = (),
    ) -> dict[str, Any]:
        async with self._lock:
            document = self._container(container).get(str(document_id))
            if document is None:
                raise DocumentNotFoundError(f"{container}/{document_id} not found")
            if not all(_matches(document, condition) for condition in conditions):
                raise ConditionNotMetError(f"{container}/{document_id} does not match the update conditions")
            for field, delta in deltas.items():
                document[field] = document.get(field, 0) + delta
            document.update(assignments or {})
            return copy.deepcopy(document)

    async def query(
        self,
        container: str,
        conditions: Sequence[Condition] = (),
        partition_key: Any = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        async with self._lock:
            results = [
                copy.deepcopy(doc)
                for doc in self._container(container).values()
                if all(_matches(doc, condition) for condition in conditions)
            ]

        if order_by:
            results.sort(key=lambda doc: doc.get(order_by), reverse=descending)
        if limit is not None:
            results = results[:limit]
        return results

    async def count(
        self,
        container: str,
        conditions: Sequence[Condition] = (),
        partition_key: Any = None,
    ) -> int:
        async with self._lock:
            return sum(
                1
                for doc in self._container(container).values()
                if all(_matches(doc, condition) for condition in conditions)
            )

    async def close(self) -> None:
        return None
