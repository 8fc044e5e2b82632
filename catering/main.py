"""
Catering storefront — application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `models/`, `services/` and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catering.api.api import api_router
from catering.api.endpoints.auth import limiter
from catering.core.config import settings
from catering.core.exceptions import register_exception_handlers
from catering.core.gate import SessionGateMiddleware
from catering.core.security import get_password_hash
from catering.db.base import Base
from catering.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from catering.models.catalogue import Category, Menu  # noqa: F401
from catering.models.user import ROLE_ADMIN, User

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── First-run seed ──────────────────────────────────────────────────
async def seed_first_admin(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Create the configured admin account unless it already exists."""
    # Sign-in lowercases emails; store the seed the same way
    email = settings.FIRST_ADMIN_EMAIL.strip().lower()
    async with session_factory() as session:
        result = await session.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none() is None:
            admin = User(
                email=email,
                hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
                name="Administrator",
                role=ROLE_ADMIN,
            )
            session.add(admin)
            await session.commit()
            logger.info("Default admin created: %s (password: <redacted>)", email)


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    # Seed default admin user on first run
    await seed_first_admin(async_session_factory)

    logger.info("%s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Catering catalogue and admin back-office",
        version=settings.VERSION,
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Rate limiting state for slowapi
    application.state.limiter = limiter

    # Page gate for /administrator, /login and /register
    application.add_middleware(SessionGateMiddleware, session_factory=async_session_factory)

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Mount API
    application.include_router(api_router, prefix=settings.API_PREFIX)

    # Serve frontend static files (must be last: catch-all mount)
    frontend_dir = Path(__file__).resolve().parent.parent / "frontend"
    if frontend_dir.is_dir():
        application.mount(
            "/",
            StaticFiles(directory=str(frontend_dir), html=True),
            name="frontend",
        )
        logger.info("Frontend mounted from %s", frontend_dir)

    return application


app = create_app()
