"""
API v1 router aggregating all endpoints.
"""

from fastapi import APIRouter

from api.v1.admin import router as admin_router
from api.v1.purchases import router as purchases_router
from api.v1.referrals import router as referrals_router
from api.v1.stats import router as stats_router
from api.v1.votes import router as votes_router

router = APIRouter()

router.include_router(votes_router, prefix="/competitions", tags=["Votes"])
router.include_router(referrals_router, prefix="/referrals", tags=["Referrals"])
router.include_router(purchases_router, prefix="/purchases", tags=["Vote Purchases"])
router.include_router(stats_router, prefix="/stats", tags=["Platform Statistics"])
router.include_router(admin_router, prefix="/admin", tags=["Admin"])
