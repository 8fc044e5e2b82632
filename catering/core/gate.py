"""
Edge request gate for the browser-facing pages.

``decide`` is a pure function of (path, role); ``SessionGateMiddleware``
resolves the session cookie against the sessions table and applies the
decision before the request reaches any route.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from catering.core.config import settings
from catering.models.user import ROLE_ADMIN, User, UserSession

logger = logging.getLogger(__name__)

ADMIN_PREFIX = "/administrator"
LOGIN_PATH = "/login"
REGISTER_PATH = "/register"
EXPIRED_LOGIN_URL = "/login?expired=true"

SESSION_COOKIE_NAMES = (
    settings.SESSION_COOKIE_NAME,
    f"__Secure-{settings.SESSION_COOKIE_NAME}",
    "csrf_token",
    "__Host-csrf_token",
)

SECURE_COOKIE_PREFIXES = ("__Secure-", "__Host-")

ALLOW = "allow"
REDIRECT_LOGIN = "redirect_login"
REDIRECT_HOME = "redirect_home"


@dataclass(frozen=True)
class GateDecision:
    action: str
    location: str | None = None
    clear_cookies: tuple[str, ...] = field(default_factory=tuple)


def is_admin_path(path: str) -> bool:
    return path == ADMIN_PREFIX or path.startswith(ADMIN_PREFIX + "/")


def is_gated_path(path: str) -> bool:
    return is_admin_path(path) or path in (LOGIN_PATH, REGISTER_PATH)


def role_home(role: str | None) -> str:
    return ADMIN_PREFIX if role == ROLE_ADMIN else "/"


def decide(path: str, role: str | None) -> GateDecision:
    """Decide what to do with a page request.

    *role* is the role of the signed-in user, or ``None`` when there is no
    valid session.
    """
    logged_in = role is not None

    if is_admin_path(path):
        if not logged_in:
            return GateDecision(REDIRECT_LOGIN, EXPIRED_LOGIN_URL, SESSION_COOKIE_NAMES)
        if role != ROLE_ADMIN:
            return GateDecision(REDIRECT_HOME, "/")
        return GateDecision(ALLOW)

    if path in (LOGIN_PATH, REGISTER_PATH) and logged_in:
        return GateDecision(REDIRECT_HOME, role_home(role))

    return GateDecision(ALLOW)


async def find_active_session(
    db: AsyncSession, token: str | None
) -> tuple[UserSession, User] | None:
    """Look up a session token and its user; expired sessions are purged."""
    if not token:
        return None
    result = await db.execute(
        select(UserSession, User)
        .join(User, User.id == UserSession.user_id)
        .where(UserSession.session_token == token)
    )
    row = result.first()
    if row is None:
        return None
    session, user = row
    expires = session.expires
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    if expires <= datetime.now(timezone.utc):
        await db.execute(delete(UserSession).where(UserSession.id == session.id))
        await db.commit()
        logger.info("Purged expired session for user %s", session.user_id)
        return None
    return session, user


async def resolve_session_role(db: AsyncSession, token: str | None) -> str | None:
    found = await find_active_session(db, token)
    return found[1].role if found else None


class SessionGateMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, session_factory: async_sessionmaker[AsyncSession]) -> None:
        super().__init__(app)
        self.session_factory = session_factory

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if not is_gated_path(path):
            return await call_next(request)

        # A factory on app.state takes precedence over the one given at startup.
        factory = getattr(request.app.state, "session_factory", None) or self.session_factory
        async with factory() as db:
            role = await resolve_session_role(db, request.cookies.get(settings.SESSION_COOKIE_NAME))

        decision = decide(path, role)
        if decision.action == ALLOW:
            return await call_next(request)

        if decision.action == REDIRECT_LOGIN:
            logger.info("No valid session for %s, redirecting to login", path)
        else:
            logger.info("Redirecting %s user away from %s to %s", role, path, decision.location)

        response = RedirectResponse(decision.location or "/", status_code=307)
        for name in decision.clear_cookies:
            # Browsers drop __Secure- / __Host- cookies that lack Secure (and path=/)
            response.delete_cookie(name, path="/", secure=name.startswith(SECURE_COOKIE_PREFIXES))
        return response
