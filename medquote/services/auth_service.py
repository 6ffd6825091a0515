from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError
import structlog

from medquote.config import settings

logger = structlog.get_logger()

# ---------- key loading ----------

_public_key: Optional[str] = None


def _load_public_key() -> str:
    global _public_key
    if _public_key is None:
        with open(settings.JWT_PUBLIC_KEY_PATH, "r") as f:
            _public_key = f.read()
    return _public_key


def _verification_key() -> str:
    if settings.JWT_ALGORITHM.startswith("HS"):
        return settings.JWT_SECRET_KEY
    return _load_public_key()


# ---------- token verification ----------


def decode_token(token: str) -> dict:
    """Decode and verify an identity-provider JWT. Raises JWTError on failure."""
    options = {"verify_aud": settings.JWT_AUDIENCE is not None}
    return jwt.decode(
        token,
        _verification_key(),
        algorithms=[settings.JWT_ALGORITHM],
        audience=settings.JWT_AUDIENCE,
        options=options,
    )


def verify_access_token(token: str) -> dict:
    """Verify a token and return the caller identity: auth_id, email, name."""
    payload = decode_token(token)
    if not payload.get("sub"):
        raise JWTError("Token has no subject")
    return {
        "auth_id": payload["sub"],
        "email": payload.get("email") or "",
        "name": payload.get("name"),
    }


# ---------- token generation (shared-secret deployments and tests) ----------


def create_access_token(
    auth_id: str,
    email: str,
    name: Optional[str] = None,
    expires_minutes: int = 60,
) -> str:
    if not settings.JWT_ALGORITHM.startswith("HS"):
        raise RuntimeError("Tokens are issued by the identity provider for this algorithm")
    now = datetime.now(timezone.utc)
    claims = {
        "sub": auth_id,
        "email": email,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    if name:
        claims["name"] = name
    if settings.JWT_AUDIENCE:
        claims["aud"] = settings.JWT_AUDIENCE
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
