"""
Pytest fixtures for StageVote ledger tests.
"""

import asyncio
import os
from collections.abc import AsyncGenerator, Callable
from typing import Any, Optional

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("STORE_RETRY_MIN_SECONDS", "0")
os.environ.setdefault("STORE_RETRY_MAX_SECONDS", "0")
os.environ.setdefault("VOTE_DAY_TIMEZONE", "UTC")

from db.memory_store import InMemoryDocumentStore  # noqa: E402
from db.session import set_store  # noqa: E402
from services.purchase_service import PaymentResult  # noqa: E402


class YieldingDocumentStore(InMemoryDocumentStore):
    """
    In-memory store that hands control back to the event loop before every
    operation, so concurrent callers interleave between their store calls
    the way they do against a remote database.
    """

    async def create(self, *args, **kwargs):
        await asyncio.sleep(0)
        return await super().create(*args, **kwargs)

    async def read(self, *args, **kwargs):
        await asyncio.sleep(0)
        return await super().read(*args, **kwargs)

    async def upsert(self, *args, **kwargs):
        await asyncio.sleep(0)
        return await super().upsert(*args, **kwargs)

    async def increment(self, *args, **kwargs):
        await asyncio.sleep(0)
        return await super().increment(*args, **kwargs)

    async def query(self, *args, **kwargs):
        await asyncio.sleep(0)
        return await super().query(*args, **kwargs)

    async def count(self, *args, **kwargs):
        await asyncio.sleep(0)
        return await super().count(*args, **kwargs)


class FakePaymentGateway:
    """Payment collaborator that approves or declines every charge."""

    def __init__(self, approve: bool = True, error_message: str = "Card declined"):
        self.approve = approve
        self.error_message = error_message
        self.charges: list[dict[str, Any]] = []

    async def charge(self, amount_cents: int, description: str, payer: str) -> PaymentResult:
        self.charges.append({"amount_cents": amount_cents, "description": description, "payer": payer})
        if not self.approve:
            return PaymentResult(success=False, error_message=self.error_message)
        return PaymentResult(success=True, transaction_reference=f"txn-{len(self.charges)}")


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
async def store() -> AsyncGenerator[InMemoryDocumentStore, None]:
    """Fresh in-memory document store, installed as the process-wide store."""
    memory_store = InMemoryDocumentStore()
    set_store(memory_store)
    yield memory_store
    set_store(None)


@pytest.fixture
async def yielding_store() -> AsyncGenerator[YieldingDocumentStore, None]:
    """Interleaving store, installed as the process-wide store."""
    interleaving_store = YieldingDocumentStore()
    set_store(interleaving_store)
    yield interleaving_store
    set_store(None)


@pytest.fixture
def seed_competition(store: InMemoryDocumentStore) -> Callable:
    """Create a competition in the directory."""

    async def _seed(
        competition_id: int = 1,
        status: str = "voting",
        max_votes_per_day: int = 10,
        category: Optional[str] = "singing",
        title: str = "Spring Showcase",
    ) -> dict[str, Any]:
        document = {
            "id": str(competition_id),
            "title": title,
            "category": category,
            "status": status,
            "max_votes_per_day": max_votes_per_day,
        }
        return await store.create("competitions", document)

    return _seed


@pytest.fixture
def seed_contestant(store: InMemoryDocumentStore) -> Callable:
    """Enter a contestant in a competition."""

    async def _seed(
        contestant_id: int,
        competition_id: int = 1,
        display_name: Optional[str] = None,
    ) -> dict[str, Any]:
        document = {
            "id": str(contestant_id),
            "competition_id": competition_id,
            "talent_profile_id": contestant_id * 100,
            "display_name": display_name or f"Contestant {contestant_id}",
            "application_status": "approved",
        }
        return await store.create("contestants", document)

    return _seed


@pytest.fixture
async def voting_competition(seed_competition: Callable, seed_contestant: Callable) -> dict[str, Any]:
    """Competition 1, open for voting, with contestants 11 and 12."""
    competition = await seed_competition(1, status="voting", max_votes_per_day=10)
    await seed_contestant(11, 1)
    await seed_contestant(12, 1)
    return competition


@pytest.fixture
def gateway_factory() -> type[FakePaymentGateway]:
    """Build payment gateways that approve or decline."""
    return FakePaymentGateway


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
async def app(store: InMemoryDocumentStore, payment_gateway: FakePaymentGateway) -> Any:
    """Create FastAPI application for testing."""
    from main import create_application

    return create_application(payment_gateway=payment_gateway)


@pytest.fixture
async def client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Forwarded-For": "203.0.113.10"},
    ) as ac:
        yield ac


@pytest.fixture
def make_auth_headers() -> Callable[..., dict[str, str]]:
    """Build Authorization headers carrying a signed caller token."""
    from core.security import create_access_token
    from models.documents import CallerLevel

    def _make(account_id: str = "user-1", level: CallerLevel = CallerLevel.VIEWER, **claims: Any) -> dict[str, str]:
        token = create_access_token({"sub": account_id, "level": int(level), **claims})
        return {"Authorization": f"Bearer {token}"}

    return _make
