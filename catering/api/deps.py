"""
FastAPI dependencies — auth guards, database session and storage.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Cookie, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from catering.core.config import settings
from catering.core.gate import find_active_session
from catering.core.security import decode_admin_token
from catering.db.session import async_session_factory
from catering.models.user import User, UserSession

# auto_error=False so a missing header ends in our own 401 body
bearer_scheme = HTTPBearer(auto_error=False)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Auth dependencies ───────────────────────────────────────────────
async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict:
    """Verify the admin bearer token and return its claims.

    Claims-only: no database access happens before the caller is known to
    be an admin.
    """
    payload = decode_admin_token(credentials.credentials) if credentials else None
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


async def get_session_user(
    session_token: str | None = Cookie(default=None, alias=settings.SESSION_COOKIE_NAME),
    db: AsyncSession = Depends(get_db),
) -> tuple[User, UserSession]:
    """Resolve the browser session cookie to its session and user."""
    found = await find_active_session(db, session_token)
    if found is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")
    session, user = found
    return user, session


# ── Request bodies ──────────────────────────────────────────────────
async def read_json_body(request: Request) -> object:
    """Decode a JSON request body inside the handler.

    Admin routes read their body here rather than through a typed body
    parameter, so the bearer check always runs before any decoding.
    """
    try:
        return await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
