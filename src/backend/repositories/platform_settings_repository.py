"""
Platform settings repository.

A single "global" document holding the vote packages on sale and the sales
tax applied to purchases.
"""

import logging
from typing import Optional

from db.cosmos_session import PLATFORM_SETTINGS_CONTAINER
from db.store import DocumentStore
from models.documents import PLATFORM_SETTINGS_ID, PlatformSettingsDocument, utc_now

logger = logging.getLogger(__name__)


class PlatformSettingsRepository:
    """Repository for the platform settings document."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def get(self) -> Optional[PlatformSettingsDocument]:
        data = await self.store.read(
            PLATFORM_SETTINGS_CONTAINER, PLATFORM_SETTINGS_ID, partition_key=PLATFORM_SETTINGS_ID
        )
        if data is None:
            return None
        return PlatformSettingsDocument(**data)

    async def save(self, platform_settings: PlatformSettingsDocument) -> PlatformSettingsDocument:
        """Replace the settings document."""
        platform_settings = platform_settings.model_copy(update={"updated_at": utc_now()})
        await self.store.upsert(PLATFORM_SETTINGS_CONTAINER, platform_settings.to_document())
        logger.info(
            f"Saved platform settings: {len(platform_settings.vote_packages)} vote packages, "
            f"{platform_settings.sales_tax_percent}% sales tax"
        )
        return platform_settings
