"""
Vote purchase repository.

Purchases are written once, after the payment collaborator confirmed the
charge, and never updated.
"""

import logging
from typing import Optional

from db.cosmos_session import VOTE_PURCHASES_CONTAINER
from db.store import DocumentStore, eq
from models.documents import PurchaseDocument

logger = logging.getLogger(__name__)


class PurchaseRepository:
    """Repository for confirmed vote purchases."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def create(self, purchase: PurchaseDocument) -> PurchaseDocument:
        await self.store.create(VOTE_PURCHASES_CONTAINER, purchase.to_document())
        logger.info(
            f"Recorded purchase {purchase.id}: {purchase.vote_count} votes for contestant "
            f"{purchase.contestant_id} in competition {purchase.competition_id}"
        )
        return purchase

    async def get(self, purchase_id: int) -> Optional[PurchaseDocument]:
        data = await self.store.read(VOTE_PURCHASES_CONTAINER, str(purchase_id), partition_key=str(purchase_id))
        if data is None:
            return None
        return PurchaseDocument(**data)

    async def list_by_payer(self, account_id: str) -> list[PurchaseDocument]:
        """Get an account's purchases, newest first."""
        return await self._list([eq("payer_account_id", account_id)])

    async def list_by_guest_email(self, email: str) -> list[PurchaseDocument]:
        """Get a guest's purchases by normalized email, newest first."""
        return await self._list([eq("guest_email", email.lower().strip())])

    async def list_by_competition(self, competition_id: int) -> list[PurchaseDocument]:
        return await self._list([eq("competition_id", competition_id)])

    async def _list(self, conditions) -> list[PurchaseDocument]:
        rows = await self.store.query(
            VOTE_PURCHASES_CONTAINER,
            conditions,
            order_by="purchased_at",
            descending=True,
        )
        return [PurchaseDocument(**r) for r in rows]
