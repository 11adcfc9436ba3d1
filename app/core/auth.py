import logging
import time
import uuid as uuid_lib
from typing import Optional, Dict, Any

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, jwk
from jose.exceptions import JWTError, JWKError, ExpiredSignatureError, JWTClaimsError
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.models.user import User

logger = logging.getLogger(__name__)

# Security scheme for Bearer token
security = HTTPBearer()

SUPPORTED_ALGORITHMS = ["ES256", "RS256"]

# JWKS cache with TTL
_jwks_cache: Optional[Dict[str, Any]] = None
_jwks_cache_time: float = 0
JWKS_CACHE_TTL = 600  # 10 minutes in seconds


def _unauthorized(detail: str = "Token verification failed") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def fetch_jwks() -> Dict[str, Any]:
    """
    Fetch the identity provider's JWKS, cached for JWKS_CACHE_TTL seconds.
    A stale cache is served if a refresh fails.

    Raises:
        HTTPException(503): If JWKS cannot be fetched and nothing is cached
    """
    global _jwks_cache, _jwks_cache_time

    current_time = time.time()
    if _jwks_cache is not None and (current_time - _jwks_cache_time) < JWKS_CACHE_TTL:
        logger.debug("Using cached JWKS")
        return _jwks_cache

    try:
        logger.info(f"Fetching JWKS from {settings.auth_jwks_url}")
        response = httpx.get(settings.auth_jwks_url, timeout=10.0)
        response.raise_for_status()
        jwks_data = response.json()

        if not isinstance(jwks_data, dict) or "keys" not in jwks_data:
            raise ValueError("Invalid JWKS structure: missing 'keys' field")

        _jwks_cache = jwks_data
        _jwks_cache_time = current_time
        logger.info(f"JWKS fetched successfully, {len(jwks_data.get('keys', []))} keys found")
        return jwks_data

    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Failed to fetch JWKS: {e}")
        if _jwks_cache is not None:
            logger.warning("Using expired JWKS cache due to fetch failure")
            return _jwks_cache
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to verify token: JWKS endpoint unavailable"
        )


def get_signing_key(token: str, jwks: Dict[str, Any]) -> Dict[str, Any]:
    """Return the JWK whose kid matches the token header."""
    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except JWTError as e:
        logger.warning(f"Malformed token header: {e}")
        raise _unauthorized()

    if not kid:
        logger.warning("Token missing 'kid' in header")
        raise _unauthorized()

    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key

    logger.warning(f"Key ID '{kid}' not found in JWKS")
    raise _unauthorized()


class Identity(BaseModel):
    """Represents the authenticated identity from the token."""
    provider: str
    uid: str
    email: Optional[str] = None


def verify_token(token: str) -> dict:
    """
    Verify a bearer JWT against the provider JWKS and return its claims.

    Signature, issuer, audience and expiry are all checked.

    Raises:
        HTTPException(401): If verification fails for any reason
    """
    jwk_key = get_signing_key(token, fetch_jwks())

    try:
        key = jwk.construct(jwk_key)
    except JWKError as e:
        logger.error(f"Failed to construct key from JWK: {e}")
        raise _unauthorized()

    header_alg = jwt.get_unverified_header(token).get("alg")
    jwk_alg = jwk_key.get("alg")
    if header_alg and jwk_alg and header_alg != jwk_alg:
        logger.warning(f"Algorithm mismatch: header={header_alg}, JWK={jwk_alg}")
        raise _unauthorized()

    algorithm = header_alg or jwk_alg or "ES256"
    if algorithm not in SUPPORTED_ALGORITHMS:
        logger.warning(f"Unsupported algorithm: {algorithm}")
        raise _unauthorized()

    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=SUPPORTED_ALGORITHMS,
            audience=settings.auth_jwt_audience,
            issuer=settings.auth_issuer,
        )
    except ExpiredSignatureError:
        logger.warning("Token has expired")
        raise _unauthorized()
    except JWTClaimsError as e:
        logger.warning(f"Token claims validation failed: {e}")
        raise _unauthorized()
    except JWTError as e:
        logger.warning(f"JWT verification error: {e}")
        raise _unauthorized()

    logger.debug(f"Token verified successfully for sub: {payload.get('sub')}")
    return payload


def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Identity:
    """Extract and verify the caller's identity from the Bearer token."""
    token = credentials.credentials
    if not token:
        raise _unauthorized("Missing token")

    claims = verify_token(token)

    uid = claims.get("sub")
    if not uid:
        logger.warning("Token missing subject (sub) claim")
        raise _unauthorized("Token missing subject (sub) claim")

    try:
        uid = str(uuid_lib.UUID(str(uid)))
    except (ValueError, TypeError):
        logger.warning(f"Invalid subject claim: {uid!r}")
        raise _unauthorized("Invalid subject (sub) claim in token")

    provider = (claims.get("app_metadata") or {}).get("provider") or "email"
    return Identity(provider=provider, uid=uid, email=claims.get("email"))


def get_or_create_user(
    db: Session,
    *,
    external_auth_uid: str,
    external_auth_provider: str | None = None,
    email: str | None = None,
) -> User:
    """
    Get the user for an identity-provider uid, creating it on first sight.
    On a duplicate-key race, re-queries and returns the existing row.
    """
    user = db.query(User).filter(User.external_auth_uid == external_auth_uid).first()
    if user:
        return user

    logger.info(f"Creating new user for external_auth_uid={external_auth_uid}, provider={external_auth_provider}")
    user = User(
        external_auth_uid=external_auth_uid,
        external_auth_provider=external_auth_provider or "email",
        email=email,
    )
    db.add(user)
    try:
        db.commit()
        db.refresh(user)
        return user
    except IntegrityError:
        db.rollback()
        user = db.query(User).filter(User.external_auth_uid == external_auth_uid).first()
        if user is not None:
            return user
        raise


def get_current_user(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the authenticated identity to a User row (strict 1:1)."""
    return get_or_create_user(
        db,
        external_auth_uid=identity.uid,
        external_auth_provider=identity.provider,
        email=identity.email,
    )
