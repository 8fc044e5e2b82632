"""
Auth endpoints — registration, admin token login and browser sessions.

Two credentials exist side by side:

* the **admin token** (``POST /auth/login``) — a signed JWT for
  ``Authorization: Bearer`` calls against ``/api/admin/*``;
* the **session cookie** (``POST /auth/session``) — an opaque token backed by
  the sessions table, read by the page gate.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, Response, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from catering.api.deps import get_db, get_session_user
from catering.core.config import settings
from catering.core.security import (
    create_admin_token,
    generate_session_token,
    get_password_hash,
    pwd_context,
    session_expiry,
    verify_password,
)
from catering.models.user import ROLE_ADMIN, ROLE_USER, User, UserSession
from catering.schemas.common import MessageResponse
from catering.schemas.user import (
    AdminLoginData,
    AdminLoginResponse,
    AdminUser,
    CredentialsRequest,
    RegisterRequest,
    RegisterResponse,
    SessionRead,
    UserRead,
)

# Rate limiter, keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


async def _authenticate(db: AsyncSession, credentials: CredentialsRequest) -> User | None:
    result = await db.execute(select(User).where(User.email == credentials.email))
    user = result.scalar_one_or_none()
    if user is None:
        # Same hashing cost whether or not the account exists
        pwd_context.dummy_verify()
        return None
    if not verify_password(credentials.password, user.hashed_password):
        return None
    return user


@router.post("/register", response_model=RegisterResponse, status_code=201)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def register(
    request: Request,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> RegisterResponse:
    """Create a regular (``USER``) account."""
    existing = await db.execute(select(User.id).where(User.email == body.email))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=body.email,
        hashed_password=get_password_hash(body.password),
        name=body.name,
        role=ROLE_USER,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Registered user %s", user.email)
    return RegisterResponse(message="Registration successful", user=UserRead.model_validate(user))


@router.post("/login", response_model=AdminLoginResponse)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def admin_login(
    request: Request,
    body: CredentialsRequest,
    db: AsyncSession = Depends(get_db),
) -> AdminLoginResponse:
    """Exchange admin credentials for a bearer token valid 24 hours.

    Credentials are checked before the role, so only a caller who already
    knows a valid password learns that the account is not an admin.
    """
    user = await _authenticate(db, body)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"success": False, "message": "Invalid email or password"},
        )
    if user.role != ROLE_ADMIN:
        logger.warning("Non-admin %s attempted admin login", user.email)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"success": False, "message": "Access denied. Admins only."},
        )

    token = create_admin_token(user.id, user.email, user.name)
    logger.info("Admin login: %s", user.email)
    return AdminLoginResponse(
        success=True,
        message="Admin login successful",
        data=AdminLoginData(
            token=token,
            user=AdminUser(id=user.id, email=user.email, name=user.name, role=user.role),
        ),
    )


# ── Browser sessions ────────────────────────────────────────────────
@router.post("/session", response_model=SessionRead)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def create_session(
    request: Request,
    response: Response,
    body: CredentialsRequest,
    db: AsyncSession = Depends(get_db),
) -> SessionRead:
    """Sign in with any role; sets the HttpOnly session cookie."""
    user = await _authenticate(db, body)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    session = UserSession(
        session_token=generate_session_token(),
        user_id=user.id,
        expires=session_expiry(),
    )
    db.add(session)
    await db.commit()

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session.session_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.SESSION_EXPIRE_HOURS * 60 * 60,
    )
    logger.info("Session started for %s", user.email)
    return SessionRead(user=UserRead.model_validate(user), expires=session.expires)


@router.get("/session", response_model=SessionRead)
async def read_session(
    current: tuple[User, UserSession] = Depends(get_session_user),
) -> SessionRead:
    """Return the user behind the session cookie."""
    user, session = current
    return SessionRead(user=UserRead.model_validate(user), expires=session.expires)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    session_token: str | None = Cookie(default=None, alias=settings.SESSION_COOKIE_NAME),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """End the browser session and clear its cookie."""
    if session_token:
        await db.execute(delete(UserSession).where(UserSession.session_token == session_token))
        await db.commit()
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return MessageResponse(message="Logged out")
