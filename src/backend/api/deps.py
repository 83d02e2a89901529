"""
Shared dependencies for API endpoints.

Includes:
- Caller identity from the upstream identity service's JWT
- Permission level checks
- Service construction on top of the process-wide document store
"""

from dataclasses import dataclass
from typing import Annotated, Optional

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import settings
from core.security import decode_token
from db.session import get_store
from models.documents import CallerLevel
from repositories.provider import get_referral_repository
from repositories.referral_repository import ReferralRepository
from services.purchase_service import PaymentGateway, PurchaseService
from services.reconciliation_service import ReconciliationService
from services.referral_service import ReferralService
from services.vote_casting_service import VoteCastingService

logger = structlog.get_logger(__name__)

# Security scheme - anonymous viewers may vote, so the token is optional
security_optional = HTTPBearer(auto_error=False)


# =============================================================================
# Caller Identity
# =============================================================================


@dataclass
class CallerIdentity:
    """Who is calling, as established by the identity service and the edge proxy."""

    ip: Optional[str]
    account_id: Optional[str] = None
    level: CallerLevel = CallerLevel.VIEWER
    name: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.account_id is not None

    @property
    def is_admin(self) -> bool:
        return self.level >= CallerLevel.ADMIN


def get_client_ip(request: Request) -> Optional[str]:
    """
    Client IP used for per-IP vote limits.

    With TRUST_FORWARDED_FOR the first hop of X-Forwarded-For wins. That is
    only safe when every request passes through an edge proxy that replaces
    the header with the address it saw; a client reaching the API directly
    could otherwise pick any IP per request. With the setting off, only the
    socket peer is used.
    """
    forwarded = request.headers.get("X-Forwarded-For") if settings.TRUST_FORWARDED_FOR else None
    if forwarded:
        ip = forwarded.split(",")[0].strip()
        if ip:
            return ip
    return request.client.host if request.client else None


async def get_caller(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security_optional)],
) -> CallerIdentity:
    """
    Resolve the caller.

    No token means an anonymous viewer. A token that is present but invalid
    is rejected rather than silently downgraded.

    Raises:
        HTTPException: If the token is invalid or carries no subject.
    """
    ip = get_client_ip(request)
    if credentials is None:
        return CallerIdentity(ip=ip)

    payload = decode_token(credentials.credentials, expected_type="access")
    if payload is None or payload.get("sub") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        level = CallerLevel(int(payload.get("level", CallerLevel.VIEWER)))
    except ValueError:
        logger.warning("unknown_caller_level", level=payload.get("level"))
        level = CallerLevel.VIEWER

    return CallerIdentity(
        ip=ip,
        account_id=str(payload["sub"]),
        level=level,
        name=payload.get("name"),
        email=payload.get("email"),
    )


class RequireLevel:
    """Dependency enforcing a minimum permission level."""

    def __init__(self, level: CallerLevel):
        self.level = level

    async def __call__(self, caller: Annotated[CallerIdentity, Depends(get_caller)]) -> CallerIdentity:
        if not caller.is_authenticated:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if caller.level < self.level:
            logger.warning(
                "insufficient_level_access_attempt",
                account_id=caller.account_id,
                level=int(caller.level),
                required=int(self.level),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{self.level.name.title()} access required",
            )
        return caller


require_talent = RequireLevel(CallerLevel.TALENT)
require_admin = RequireLevel(CallerLevel.ADMIN)


# =============================================================================
# Services
# =============================================================================


async def get_casting_service() -> VoteCastingService:
    return VoteCastingService(get_store())


async def get_referral_service(
    referrals: Annotated[ReferralRepository, Depends(get_referral_repository)],
) -> ReferralService:
    return ReferralService(referrals)


async def get_purchase_service() -> PurchaseService:
    return PurchaseService(get_store())


async def get_reconciliation_service() -> ReconciliationService:
    return ReconciliationService(get_store())


async def get_payment_gateway(request: Request) -> PaymentGateway:
    """
    The payment collaborator registered on the application.

    Raises:
        HTTPException: 503 if no gateway is configured.
    """
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment processing is not configured",
        )
    return gateway
