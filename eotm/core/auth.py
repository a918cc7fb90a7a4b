"""Azure AD bearer tokens for API callers: JWKS lookup and claim checks."""

from __future__ import annotations

import logging
import time
from typing import Any

import aiohttp
from fastapi import HTTPException, status
from jose import jwk, jwt
from jose.constants import Algorithms
from jose.exceptions import ExpiredSignatureError, JWSSignatureError, JWTClaimsError, JWTError

logger = logging.getLogger(__name__)

LOGIN_BASE_URL = "https://login.microsoftonline.com"

_JWKS_TTL_SECONDS = 24 * 60 * 60
_JWKS_TIMEOUT_SECONDS = 15

# tenant id -> (fetched at, key set)
_jwks_cache: dict[str, tuple[float, dict[str, Any]]] = {}


def clear_jwks_cache() -> None:
    _jwks_cache.clear()


async def get_jwks(tenant_id: str) -> dict[str, Any]:
    cached = _jwks_cache.get(tenant_id)
    now = time.time()
    if cached and now - cached[0] < _JWKS_TTL_SECONDS:
        return cached[1]

    jwks_uri = f"{LOGIN_BASE_URL}/{tenant_id}/discovery/v2.0/keys"
    logger.info("Fetching JWKS from %s", jwks_uri)

    try:
        timeout = aiohttp.ClientTimeout(total=_JWKS_TIMEOUT_SECONDS)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(jwks_uri) as response:
                response.raise_for_status()
                jwks = await response.json()
    except (aiohttp.ClientError, TimeoutError) as e:
        logger.error("Failed to fetch JWKS: %s", e)
        if cached:
            logger.warning("Using expired JWKS from cache for tenant %s", tenant_id)
            return cached[1]
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not fetch token signing keys",
        ) from e

    _jwks_cache[tenant_id] = (now, jwks)
    return jwks


async def get_signing_key(token: str, tenant_id: str) -> dict[str, str]:
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token header: {e}",
        ) from e

    kid = header.get("kid")
    if not kid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has no 'kid' in header",
        )

    jwks = await get_jwks(tenant_id)
    key = next((k for k in jwks.get("keys", []) if k.get("kid") == kid), None)
    if key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"No matching signing key for kid: {kid}",
        )
    return key


async def validate_token(token: str, tenant_id: str, client_id: str) -> dict[str, Any]:
    """Verify signature, expiry, issuer and audience; return the claims.

    Both v1 (``sts.windows.net``) and v2 issuers are accepted, and the
    audience may be the bare client id or its ``api://`` URI.
    """
    if not tenant_id or not client_id:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Missing Azure AD configuration",
        )

    signing_key = await get_signing_key(token, tenant_id)
    algorithm = signing_key.get("alg", Algorithms.RS256)
    public_key = jwk.construct(signing_key, algorithm=algorithm)

    issuers = [f"{LOGIN_BASE_URL}/{tenant_id}/v2.0", f"https://sts.windows.net/{tenant_id}/"]
    audiences = [client_id, f"api://{client_id}"]

    try:
        claims = jwt.decode(
            token,
            public_key,
            algorithms=[algorithm],
            options={"verify_aud": False, "verify_iss": False, "require_exp": True},
        )
    except ExpiredSignatureError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token is expired") from e
    except JWSSignatureError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token signature") from e
    except (JWTClaimsError, JWTError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        ) from e

    if claims.get("iss") not in issuers:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token issuer. Expected one of: {issuers}",
        )
    token_audiences = claims.get("aud")
    if isinstance(token_audiences, str):
        token_audiences = [token_audiences]
    if not set(token_audiences or []) & set(audiences):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token audience. Expected one of: {audiences}",
        )
    return claims


def extract_roles_from_token(payload: dict[str, Any]) -> list[str]:
    roles = payload.get("roles", [])
    if not isinstance(roles, list):
        return []
    return [str(r) for r in roles if isinstance(r, str | int)]
