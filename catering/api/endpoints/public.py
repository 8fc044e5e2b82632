"""
Public catalogue endpoints — no authentication.

Only PUBLISHED menus are ever exposed here.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload, with_loader_criteria

from catering.api.deps import get_db
from catering.core.config import settings
from catering.models.catalogue import STATUS_PUBLISHED, Category, Menu
from catering.schemas.category import CategoryListResponse, CategoryRead
from catering.schemas.common import Pagination
from catering.schemas.public import PublicCategory, PublicMenu, PublicMenuResponse
from catering.services.catalogue import escape_like, paginate_categories

router = APIRouter(prefix="/public", tags=["public"])


def _public_menu(menu: Menu) -> PublicMenu:
    return PublicMenu(
        id=menu.id,
        name=menu.name,
        description=list(menu.description or []),
        price=menu.price,
        discounted_price=menu.discounted_price or None,
        discount_percent=menu.discount_percent or None,
        image_url=menu.image_url or None,
        image_alt=menu.image_alt or None,
    )


@router.get("/menu", response_model=PublicMenuResponse)
async def public_menu(
    category: str | None = None,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """Categories owning at least one published menu, each with its published menus."""
    query = (
        select(Category)
        .where(Category.menus.any(Menu.status == STATUS_PUBLISHED))
        .options(
            selectinload(Category.menus),
            with_loader_criteria(Menu, Menu.status == STATUS_PUBLISHED),
        )
        .order_by(Category.created_at.asc())
    )
    if category:
        query = query.where(Category.name.ilike(f"%{escape_like(category)}%", escape="\\"))

    result = await db.execute(query)
    categories = [
        PublicCategory(
            id=c.id,
            name=c.name.upper(),
            menus=[_public_menu(m) for m in sorted(c.menus, key=lambda m: m.created_at)],
        )
        for c in result.scalars().all()
    ]

    body = PublicMenuResponse(categories=categories)
    return JSONResponse(
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers={"Cache-Control": settings.PUBLIC_CACHE_CONTROL},
    )


@router.options("/menu")
async def public_menu_preflight() -> Response:
    return Response(
        status_code=200,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type",
            "Access-Control-Max-Age": "86400",
        },
    )


@router.get("/categories", response_model=CategoryListResponse)
async def public_categories(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: str | None = None,
    db: AsyncSession = Depends(get_db),
) -> CategoryListResponse:
    rows, total = await paginate_categories(db, page, limit, search)
    return CategoryListResponse(
        categories=[CategoryRead.from_row(c, count) for c, count in rows],
        pagination=Pagination.build(page, limit, total),
    )
