"""
auth.py — Bearer-token verification for the identity provider (Supabase-style JWT).

Tokens are verified locally with the shared HS256 secret; the provider is never
called per request. Dependencies:

    require_user   — 401 when the token is missing/invalid, 403 for non-user roles
    optional_user  — None when no token is sent; an invalid token still fails

Logs only user ids — never tokens or e-mail addresses.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from intake.config import settings
from intake.errors import ServiceNotConfigured, Unauthenticated, Unauthorized
from intake.profile.schemas import CamelModel

logger = logging.getLogger(__name__)

JWT_ALGORITHMS = ["HS256"]
USER_ROLE = "authenticated"

# auto_error=False → a missing header reaches us as None and becomes our own 401
security = HTTPBearer(auto_error=False)


class AuthUser(CamelModel):
    id: str
    email: str = ""
    company_name: str = ""
    created_at: Optional[str] = None


def decode_token(token: str) -> dict[str, Any]:
    """
    Verify signature, expiry and audience; return the claims.

    Raises:
        ServiceNotConfigured: no signing secret configured.
        Unauthenticated:      expired or otherwise invalid token.
        Unauthorized:         valid token for a role other than a signed-in user.
    """
    if not settings.auth_jwt_secret:
        logger.error("AUTH_JWT_SECRET is not set — cannot verify tokens")
        raise ServiceNotConfigured()

    try:
        claims = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=JWT_ALGORITHMS,
            audience=settings.auth_jwt_audience,
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Session expired. Please sign in again.")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid authentication token")

    role = claims.get("role", USER_ROLE)
    if role != USER_ROLE:
        logger.info("Rejected token with role=%s", role)
        raise Unauthorized()
    if not claims.get("sub"):
        raise Unauthenticated("Invalid authentication token")
    return claims


def user_from_claims(claims: dict[str, Any]) -> AuthUser:
    email = claims.get("email") or ""
    metadata = claims.get("user_metadata") or {}
    company_name = metadata.get("companyName") or email.split("@")[0]

    created_at = claims.get("created_at")
    if not created_at and claims.get("iat"):
        created_at = datetime.fromtimestamp(claims["iat"], tz=timezone.utc).isoformat()

    return AuthUser(
        id=claims["sub"],
        email=email,
        company_name=company_name,
        created_at=created_at,
    )


def verify_token(token: str) -> AuthUser:
    return user_from_claims(decode_token(token))


async def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthUser:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()
    return verify_token(credentials.credentials)


async def optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthUser]:
    if credentials is None or not credentials.credentials:
        return None
    return verify_token(credentials.credentials)


async def require_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """Raw bearer token, for the identity cache (keyed by token digest)."""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()
    return credentials.credentials
