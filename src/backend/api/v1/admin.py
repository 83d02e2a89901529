"""
Admin endpoints for ledger maintenance.

All endpoints require admin access. Reconciliation is never triggered
automatically; operators run it here or via scripts/reconcile_vote_counts.py.
"""

from typing import Annotated, Optional

import structlog
from fastapi import APIRouter, Body, Depends

from api.deps import (
    CallerIdentity,
    get_casting_service,
    get_purchase_service,
    get_reconciliation_service,
    require_admin,
)
from models.documents import VotePackage
from schemas.purchase import PlatformSettingsUpdate, PurchaseRecordResponse, VotePackageSchema, VotePackagesResponse
from schemas.vote import (
    ReconciliationEntry,
    ReconciliationResponse,
    SyncCountRequest,
    TeardownResponse,
)
from services.purchase_service import PurchaseService
from services.reconciliation_service import ReconciliationService
from services.vote_casting_service import VoteCastingService

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/competitions/{competition_id}/reconcile", response_model=ReconciliationResponse)
async def reconcile_competition(
    competition_id: int,
    admin: Annotated[CallerIdentity, Depends(require_admin)],
    service: Annotated[ReconciliationService, Depends(get_reconciliation_service)],
) -> ReconciliationResponse:
    """Recount every vote aggregate of a competition from the vote log."""
    logger.info("admin_reconcile_requested", competition_id=competition_id, admin_id=admin.account_id)
    results = await service.reconcile_competition(competition_id)
    return ReconciliationResponse(
        competition_id=competition_id,
        aggregates_checked=len(results),
        aggregates_repaired=sum(1 for r in results if r.changed),
        results=[ReconciliationEntry(**r.to_dict()) for r in results],
    )


@router.post(
    "/competitions/{competition_id}/contestants/{contestant_id}/sync",
    response_model=ReconciliationEntry,
)
async def sync_contestant_count(
    competition_id: int,
    contestant_id: int,
    admin: Annotated[CallerIdentity, Depends(require_admin)],
    service: Annotated[ReconciliationService, Depends(get_reconciliation_service)],
    body: Annotated[Optional[SyncCountRequest], Body()] = None,
) -> ReconciliationEntry:
    """Recount one contestant's aggregate. The vote log wins over any supplied total."""
    result = await service.sync_count(
        competition_id,
        contestant_id,
        authoritative_total=body.authoritative_total if body else None,
    )
    return ReconciliationEntry(**result.to_dict())


@router.delete("/competitions/{competition_id}/ledger", response_model=TeardownResponse)
async def delete_competition_ledger(
    competition_id: int,
    admin: Annotated[CallerIdentity, Depends(require_admin)],
    service: Annotated[VoteCastingService, Depends(get_casting_service)],
) -> TeardownResponse:
    """Delete every vote, vote aggregate and daily quota of a competition."""
    logger.warning("admin_ledger_teardown", competition_id=competition_id, admin_id=admin.account_id)
    deleted = await service.teardown_competition(competition_id)
    return TeardownResponse(competition_id=competition_id, **deleted)


@router.get("/competitions/{competition_id}/purchases", response_model=list[PurchaseRecordResponse])
async def list_competition_purchases(
    competition_id: int,
    admin: Annotated[CallerIdentity, Depends(require_admin)],
    service: Annotated[PurchaseService, Depends(get_purchase_service)],
) -> list[PurchaseRecordResponse]:
    """Every vote purchase made in a competition, newest first."""
    purchases = await service.list_by_competition(competition_id)
    return [PurchaseRecordResponse.model_validate(p) for p in purchases]


@router.put("/platform-settings", response_model=VotePackagesResponse)
async def update_platform_settings(
    data: PlatformSettingsUpdate,
    admin: Annotated[CallerIdentity, Depends(require_admin)],
    service: Annotated[PurchaseService, Depends(get_purchase_service)],
) -> VotePackagesResponse:
    """Replace the vote packages on sale and the sales tax rate."""
    saved = await service.update_platform_settings(
        [VotePackage(**p.model_dump()) for p in data.vote_packages],
        data.sales_tax_percent,
    )
    logger.info("admin_platform_settings_updated", admin_id=admin.account_id)
    return VotePackagesResponse(
        packages=[VotePackageSchema.model_validate(p) for p in saved.vote_packages],
        sales_tax_percent=saved.sales_tax_percent,
    )
