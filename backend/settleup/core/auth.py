import logging
import uuid

import httpx
import jwt as pyjwt
from jwt import PyJWK
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from settleup.core.config import settings
from settleup.core.database import get_db
from settleup.models.user import User

logger = logging.getLogger(__name__)

security = HTTPBearer()

_jwks_cache: dict[str, PyJWK] | None = None


async def _fetch_jwks() -> dict[str, PyJWK]:
    jwks_url = f"{settings.supabase_url}/auth/v1/.well-known/jwks.json"
    async with httpx.AsyncClient() as client:
        resp = await client.get(jwks_url)
        resp.raise_for_status()
        return {k["kid"]: PyJWK(k) for k in resp.json().get("keys", []) if "kid" in k}


async def _signing_key(kid: str | None) -> PyJWK:
    global _jwks_cache
    if _jwks_cache is None or kid not in _jwks_cache:
        # Unknown kid: the provider may have rotated keys since the last fetch.
        _jwks_cache = await _fetch_jwks()
    key = _jwks_cache.get(kid) if kid else None
    if key is None:
        raise pyjwt.InvalidTokenError("No matching key found")
    return key


async def decode_token(token: str) -> uuid.UUID:
    """Verify the bearer token and return the user id it was issued to."""
    try:
        header = pyjwt.get_unverified_header(token)
        key = await _signing_key(header.get("kid"))
        payload = pyjwt.decode(token, key, algorithms=["ES256"], audience="authenticated")
        return uuid.UUID(payload["sub"])
    except (pyjwt.InvalidTokenError, KeyError, ValueError) as e:
        logger.info(f"Rejected bearer token: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    user_id = await decode_token(credentials.credentials)
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user
