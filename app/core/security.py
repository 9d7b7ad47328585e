import logging
from functools import lru_cache
from typing import Optional

import httpx
from jose import jwt, JWTError
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import settings

logger = logging.getLogger(__name__)

# Bearer token extractor (auto_error=False allows optional auth)
security = HTTPBearer(auto_error=False)

ASYMMETRIC_ALGORITHMS = ["RS256", "ES256", "EdDSA"]


@lru_cache(maxsize=1)
def get_jwks() -> dict:
    """Fetch Supabase JWKS for JWT verification (cached)."""
    jwks_url = f"{settings.supabase_url}/auth/v1/.well-known/jwks.json"
    response = httpx.get(jwks_url, timeout=10.0)
    response.raise_for_status()
    return response.json()


def _find_jwk(kid: str | None) -> dict | None:
    for k in get_jwks().get("keys", []):
        if k.get("kid") == kid:
            return k

    # JWKS might be stale, clear cache and retry once
    logger.warning(f"JWT kid={kid} not found in cached JWKS, refreshing...")
    get_jwks.cache_clear()
    for k in get_jwks().get("keys", []):
        if k.get("kid") == kid:
            return k
    return None


def verify_jwt(token: str) -> dict:
    """Verify a Supabase JWT and return the payload.

    HS256 tokens are checked against the project's shared JWT secret;
    asymmetric tokens against the key published in the project's JWKS.
    """
    try:
        unverified_header = jwt.get_unverified_header(token)
        alg = unverified_header.get("alg")

        if not alg:
            logger.warning("JWT missing algorithm in header")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: missing algorithm"
            )

        if alg == "HS256":
            if not settings.supabase_jwt_secret:
                logger.warning("HS256 token received but SUPABASE_JWT_SECRET is not configured")
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Invalid token: unsupported algorithm HS256"
                )
            key = settings.supabase_jwt_secret
        elif alg in ASYMMETRIC_ALGORITHMS:
            kid = unverified_header.get("kid")
            key = _find_jwk(kid)
            if not key:
                logger.error(f"JWT kid={kid} not found even after JWKS refresh")
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail=f"Invalid token: key not found for kid={kid}"
                )
        else:
            logger.warning(f"JWT unsupported algorithm: {alg}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token: unsupported algorithm {alg}"
            )

        return jwt.decode(
            token,
            key,
            algorithms=[alg],
            audience="authenticated",
            options={"verify_aud": True}
        )

    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}"
        )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[dict]:
    """Get current authenticated user from JWT (optional auth)."""
    if not credentials:
        return None
    return verify_jwt(credentials.credentials)


def require_auth(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    """Require authentication - raises 401 if not authenticated."""
    if not credentials:
        logger.warning("Auth required but no Bearer token provided")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return verify_jwt(credentials.credentials)
