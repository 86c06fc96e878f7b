"""
Bearer token handling.

Tokens are issued by the identity service; this service only verifies them and reads the
caller's wallet identity, role and user type.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import structlog
from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.config import get_settings

logger = structlog.get_logger(__name__)
security = HTTPBearer(auto_error=False)

ADMIN_ROLE = "admin"
CREATOR_TYPE = "creator"


def normalize_identity(wallet_address: Optional[str]) -> str:
    return (wallet_address or "").strip().lower()


@dataclass(frozen=True)
class CurrentUser:
    wallet_address: str
    role: str = "user"
    user_type: str = "donor"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @property
    def is_creator(self) -> bool:
        return self.user_type == CREATOR_TYPE


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    to_encode = data.copy()
    to_encode.update({"exp": now + (expires_delta or timedelta(hours=1)), "iat": now})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Dict:
    """Decode and validate JWT token (signature and expiry)"""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.warning("JWT decode error", error=str(e))
        raise HTTPException(
            status_code=401,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def _user_from_claims(claims: Dict) -> CurrentUser:
    wallet_address = normalize_identity(claims.get("walletAddress"))
    if not wallet_address:
        raise HTTPException(
            status_code=401,
            detail="Token has no wallet identity",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentUser(
        wallet_address=wallet_address,
        role=claims.get("role") or "user",
        user_type=claims.get("userType") or "donor",
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> CurrentUser:
    """Get current user (required)"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _user_from_claims(decode_token(credentials.credentials))


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> Optional[CurrentUser]:
    """Get current user if a valid token was sent; anything else is an anonymous caller"""
    if not credentials:
        return None
    try:
        return _user_from_claims(decode_token(credentials.credentials))
    except HTTPException:
        return None


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> CurrentUser:
    user = await get_current_user(credentials)
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
