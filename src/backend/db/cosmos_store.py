"""
Cosmos DB implementation of the DocumentStore protocol.

Translates Condition predicates into parameterized Cosmos DB SQL and maps
SDK exceptions onto the store error hierarchy.
"""

import json
import logging
from typing import Any, Optional, Sequence

from azure.cosmos.exceptions import (
    CosmosAccessConditionFailedError,
    CosmosHttpResponseError,
    CosmosResourceExistsError,
    CosmosResourceNotFoundError,
)

from db import cosmos_session
from db.store import (
    Condition,
    ConditionNotMetError,
    DocumentExistsError,
    DocumentNotFoundError,
    Operator,
    StoreConflictError,
)

logger = logging.getLogger(__name__)

# HTTP status codes Cosmos DB uses for transient contention
_RETRYABLE_STATUS_CODES = {408, 409, 412, 429, 449, 503}


def _translate_error(exc: CosmosHttpResponseError) -> Exception:
    if isinstance(exc, CosmosResourceNotFoundError):
        return DocumentNotFoundError(str(exc))
    if isinstance(exc, CosmosResourceExistsError):
        return DocumentExistsError(str(exc))
    if isinstance(exc, CosmosAccessConditionFailedError) or exc.status_code in _RETRYABLE_STATUS_CODES:
        return StoreConflictError(str(exc))
    return exc


def build_where_clause(conditions: Sequence[Condition]) -> tuple[str, list[dict[str, Any]]]:
    """
    Build a WHERE clause and its parameters from predicates.

    Field names come from repository code, never from user input; values are
    always passed as parameters.
    """
    clauses: list[str] = []
    parameters: list[dict[str, Any]] = []

    for index, condition in enumerate(conditions):
        field = f"c.{condition.field}"
        name = f"@p{index}"

        if condition.op == Operator.IS_NULL:
            clauses.append(f"(NOT IS_DEFINED({field}) OR IS_NULL({field}))")
            continue
        if condition.op == Operator.NOT_NULL:
            clauses.append(f"(IS_DEFINED({field}) AND NOT IS_NULL({field}))")
            continue

        if condition.op == Operator.IN:
            clauses.append(f"ARRAY_CONTAINS({name}, {field})")
        else:
            clauses.append(f"{field} {condition.op.value} {name}")
        parameters.append({"name": name, "value": condition.value})

    if not clauses:
        return "", parameters
    return " WHERE " + " AND ".join(clauses), parameters


def build_filter_predicate(conditions: Sequence[Condition]) -> Optional[str]:
    """
    Build a patch filter predicate from predicates.

    Patch predicates take no parameters, so values are inlined as JSON
    literals. Parameters are substituted highest index first so @p1 never
    clobbers @p10.
    """
    if not conditions:
        return None
    where, parameters = build_where_clause(conditions)
    for parameter in reversed(parameters):
        where = where.replace(parameter["name"], json.dumps(parameter["value"]))
    return f"FROM c{where}"


class CosmosDocumentStore:
    """DocumentStore backed by Azure Cosmos DB containers."""

    async def create(self, container: str, document: dict[str, Any]) -> dict[str, Any]:
        try:
            return await cosmos_session.create_item(container, document)
        except CosmosHttpResponseError as e:
            raise _translate_error(e) from e

    async def read(self, container: str, document_id: str, partition_key: Any) -> Optional[dict[str, Any]]:
        try:
            return await cosmos_session.read_item(container, document_id, partition_key)
        except CosmosResourceNotFoundError:
            return None
        except CosmosHttpResponseError as e:
            raise _translate_error(e) from e

    async def upsert(self, container: str, document: dict[str, Any]) -> dict[str, Any]:
        try:
            return await cosmos_session.upsert_item(container, document)
        except CosmosHttpResponseError as e:
            raise _translate_error(e) from e

    async def delete(self, container: str, document_id: str, partition_key: Any) -> None:
        try:
            await cosmos_session.delete_item(container, document_id, partition_key)
        except CosmosHttpResponseError as e:
            raise _translate_error(e) from e

    async def increment(
        self,
        container: str,
        document_id: str,
        partition_key: Any,
        deltas: dict[str, int],
        assignments: Optional[dict[str, Any]] = None,
        conditions: Sequence[Condition] = (),
    ) -> dict[str, Any]:
        operations: list[dict[str, Any]] = [
            {"op": "incr", "path": f"/{field}", "value": delta} for field, delta in deltas.items()
        ]
        for field, value in (assignments or {}).items():
            operations.append({"op": "set", "path": f"/{field}", "value": value})

        try:
            return await cosmos_session.patch_item(
                container,
                document_id,
                partition_key,
                operations,
                filter_predicate=build_filter_predicate(conditions),
            )
        except CosmosHttpResponseError as e:
            if conditions and e.status_code == 412:
                raise ConditionNotMetError(str(e)) from e
            raise _translate_error(e) from e

    async def query(
        self,
        container: str,
        conditions: Sequence[Condition] = (),
        partition_key: Any = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        where, parameters = build_where_clause(conditions)
        query = f"SELECT * FROM c{where}"
        if order_by:
            query += f" ORDER BY c.{order_by} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            query += f" OFFSET 0 LIMIT {int(limit)}"

        try:
            return await cosmos_session.query_items(container, query, parameters, partition_key)
        except CosmosHttpResponseError as e:
            raise _translate_error(e) from e

    async def count(
        self,
        container: str,
        conditions: Sequence[Condition] = (),
        partition_key: Any = None,
    ) -> int:
        where, parameters = build_where_clause(conditions)
        query = f"SELECT VALUE COUNT(1) FROM c{where}"

        try:
            return await cosmos_session.query_count(container, query, parameters, partition_key)
        except CosmosHttpResponseError as e:
            raise _translate_error(e) from e

    async def close(self) -> None:
        await cosmos_session.close_cosmos()
