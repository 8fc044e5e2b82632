"""
Admin JWT creation / verification, session tokens and password hashing (bcrypt).
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from catering.core.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

_ALGORITHM = settings.ALGORITHM
_SECRET = settings.SECRET_KEY

ADMIN_ROLE_CLAIM = "admin"


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)


# ── Admin bearer tokens ─────────────────────────────────────────────
def create_admin_token(
    user_id: str,
    email: str,
    full_name: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(hours=settings.ADMIN_TOKEN_EXPIRE_HOURS)
    )
    claims: dict[str, Any] = {
        "exp": expire,
        "sub": str(user_id),
        "userId": str(user_id),
        "email": email,
        "full_name": full_name or "",
        "user_role": ADMIN_ROLE_CLAIM,
        "isAdmin": True,
    }
    return jwt.encode(claims, _SECRET, algorithm=_ALGORITHM)


def decode_admin_token(token: str) -> dict | None:
    """Return the claims if *token* is a valid, unexpired admin token, else ``None``."""
    try:
        payload = jwt.decode(token, _SECRET, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if payload.get("user_role") != ADMIN_ROLE_CLAIM:
        return None
    return payload


# ── Browser sessions ────────────────────────────────────────────────
def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def session_expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(hours=settings.SESSION_EXPIRE_HOURS)
