"""Security utilities for caller verification and voter privacy.

Authentication itself happens upstream: the identity service signs a caller
token carrying the account id and permission level, and this module only
verifies it. Voter identities used for referral deduplication are stored as
keyed hashes, never as raw IP addresses.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt

from core.config import settings

# Token issuer and audience for validation
TOKEN_ISSUER = "stagevote-identity"
TOKEN_AUDIENCE = "stagevote-ledger"


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed caller token (used by the identity service and tooling)."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update(
        {
            "exp": expire,
            "iat": now,
            "type": "access",
            "iss": TOKEN_ISSUER,
            "aud": TOKEN_AUDIENCE,
            "jti": secrets.token_urlsafe(16),
        }
    )
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, expected_type: str | None = None) -> dict[str, Any] | None:
    """
    Decode and validate a caller token.

    Args:
        token: The JWT token to decode
        expected_type: If provided, validates the token type matches

    Returns:
        The decoded payload or None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            issuer=TOKEN_ISSUER,
            audience=TOKEN_AUDIENCE,
        )
        if expected_type and payload.get("type") != expected_type:
            return None
        return payload
    except JWTError:
        return None


def hash_voter_identity(identity: str, scope: str) -> str:
    """
    Generate a privacy-preserving token for a voter identity.

    The same identity within the same scope (a referral code) always maps to
    the same token, so it can be used for deduplication, while the raw IP or
    account id cannot be recovered from it. Keyed with SECRET_KEY to prevent
    rainbow table attacks on the small IPv4 space.
    """
    message = f"{scope}:{identity}".encode()
    return hmac.new(settings.SECRET_KEY.encode(), message, hashlib.sha256).hexdigest()


def generate_referral_code(num_bytes: int) -> str:
    """Generate a short opaque referral code (uppercase hex)."""
    return secrets.token_hex(num_bytes).upper()


def normalize_referral_code(code: Optional[str]) -> Optional[str]:
    """Canonical form of a user-supplied referral code (codes are issued uppercase)."""
    if code is None:
        return None
    return code.strip().upper() or None
