"""
Async SQLAlchemy engine & session factory (asyncpg driver).
"""

from __future__ import annotations

import json

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from catering.core.config import settings


def json_serializer(value: object) -> str:
    # Keep non-ASCII text readable so LIKE searches over JSON columns match it
    return json.dumps(value, ensure_ascii=False)


engine_args = {
    "echo": False,
    "pool_pre_ping": True,
    "json_serializer": json_serializer,
}

if "postgresql" in settings.DATABASE_URL:
    engine_args.update(
        {
            "pool_size": 20,
            "max_overflow": 10,
            "pool_recycle": 300,
        }
    )

engine = create_async_engine(
    settings.DATABASE_URL,
    **engine_args,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
