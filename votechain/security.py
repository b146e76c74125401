# votechain/security.py
# Admin capability checks. These run in the HTTP layer before any
# state-changing election call and are not part of the ledger.

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Header, HTTPException, Request
from jose import JWTError, jwt
from passlib.context import CryptContext

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ADMIN_SUBJECT = "admin"


# Hash a secret
def hash_secret(secret: str) -> str:
    return pwd_context.hash(secret)


# Verify a plain secret against a hash
def verify_secret(plain_secret: str, hashed_secret: str) -> bool:
    return pwd_context.verify(plain_secret, hashed_secret)


class AdminGuard:
    """Checks admin keys and the bearer tokens issued in exchange for them."""

    def __init__(self, admin_key: Optional[str], secret_key: str, algorithm: str = "HS256",
                 expire_minutes: int = 60):
        # Only the hash is kept in memory
        self._key_hash = hash_secret(admin_key) if admin_key else None
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes
        if self._key_hash is None:
            logger.warning("ADMIN_KEY is not set; admin endpoints will refuse every request")

    @property
    def enabled(self) -> bool:
        return self._key_hash is not None

    def verify_key(self, admin_key: Optional[str]) -> bool:
        if not self.enabled or not admin_key:
            return False
        return verify_secret(admin_key, self._key_hash)

    # Create JWT access token
    def create_access_token(self, data: Optional[dict] = None, expires_delta: Optional[int] = None) -> str:
        to_encode = dict(data or {})
        to_encode.setdefault("sub", ADMIN_SUBJECT)
        minutes = self.expire_minutes if expires_delta is None else expires_delta
        expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: Optional[str]) -> bool:
        if not self.enabled or not token:
            return False
        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return False
        return claims.get("sub") == ADMIN_SUBJECT


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def require_admin(
    request: Request,
    x_admin_key: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
) -> None:
    """FastAPI dependency: accept an X-Admin-Key header or an admin bearer token."""
    guard: AdminGuard = request.app.state.admin_guard
    if guard.verify_key(x_admin_key) or guard.verify_token(_bearer_token(authorization)):
        return
    client = request.client.host if request.client else "unknown"
    logger.warning("Rejected admin request to %s from %s", request.url.path, client)
    raise HTTPException(status_code=401, detail="Unauthorized access")
