"""
Document store contract.

Repositories depend on this protocol rather than on a specific database's
query dialect. Queries are expressed as a list of Condition predicates that
every backend translates for itself: Cosmos DB SQL in production, plain
Python evaluation for the in-memory backend.

The store offers per-document atomicity only. There are no cross-document
transactions; increment() is the atomic primitive that counters build on.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, Sequence, runtime_checkable


class StoreError(Exception):
    """Base class for document store errors."""


class DocumentNotFoundError(StoreError):
    """The addressed document does not exist."""


class DocumentExistsError(StoreError):
    """A document with the same id already exists."""


class StoreConflictError(StoreError):
    """Transient contention (throttling, precondition failure). Safe to retry."""


class ConditionNotMetError(StoreError):
    """A conditional update found the document outside its conditions. Not retried."""


class Operator(str, Enum):
    """Comparison operators supported in query predicates."""

    EQ = "="
    NE = "!="
    GTE = ">="
    LT = "<"
    IN = "IN"
    IS_NULL = "IS_NULL"
    NOT_NULL = "NOT_NULL"


@dataclass(frozen=True)
class Condition:
    """A single `field <op> value` predicate. Conditions in a query are ANDed."""

    field: str
    op: Operator
    value: Any = None


def eq(field: str, value: Any) -> Condition:
    return Condition(field, Operator.EQ, value)


def ne(field: str, value: Any) -> Condition:
    return Condition(field, Operator.NE, value)


def gte(field: str, value: Any) -> Condition:
    return Condition(field, Operator.GTE, value)


def lt(field: str, value: Any) -> Condition:
    return Condition(field, Operator.LT, value)


def is_in(field: str, values: Sequence[Any]) -> Condition:
    return Condition(field, Operator.IN, list(values))


def is_null(field: str) -> Condition:
    return Condition(field, Operator.IS_NULL)


def not_null(field: str) -> Condition:
    return Condition(field, Operator.NOT_NULL)


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol implemented by every document store backend."""

    async def create(self, container: str, document: dict[str, Any]) -> dict[str, Any]:
        """Insert a new document. Raises DocumentExistsError on id collision."""
        ...

    async def read(self, container: str, document_id: str, partition_key: str) -> Optional[dict[str, Any]]:
        """Point read. Returns None when the document does not exist."""
        ...

    async def upsert(self, container: str, document: dict[str, Any]) -> dict[str, Any]:
        """Create or replace a document."""
        ...

    async def delete(self, container: str, document_id: str, partition_key: str) -> None:
        """Delete a document. Raises DocumentNotFoundError if absent."""
        ...

    async def increment(
        self,
        container: str,
        document_id: str,
        partition_key: str,
        deltas: dict[str, int],
        assignments: Optional[dict[str, Any]] = None,
        conditions: Sequence[Condition] = (),
    ) -> dict[str, Any]:
        """
        Atomically add `deltas` to numeric fields and set `assignments`.

        When `conditions` are given the update is applied only if the stored
        document matches all of them, as part of the same atomic step.

        Returns the document after the update. Raises DocumentNotFoundError
        if the document does not exist and ConditionNotMetError if it does
        not match `conditions`.
        """
        ...

    async def query(
        self,
        container: str,
        conditions: Sequence[Condition] = (),
        partition_key: Optional[str] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Return documents matching every condition."""
        ...

    async def count(
        self,
        container: str,
        conditions: Sequence[Condition] = (),
        partition_key: Optional[str] = None,
    ) -> int:
        """Count documents matching every condition."""
        ...

    async def close(self) -> None:
        ...
