"""
Admin Category CRUD.

Every route requires an admin bearer token (router-level dependency).
A category can only be deleted once it owns no menus.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from catering.api.deps import get_db, read_json_body, require_admin
from catering.models.catalogue import Category, Menu
from catering.schemas.category import (
    CategoryDetail,
    CategoryListResponse,
    CategoryMenuItem,
    CategoryMutationResponse,
    CategoryRead,
    CategoryResponse,
    CategoryWrite,
)
from catering.schemas.common import MessageResponse, Pagination
from catering.services.catalogue import count_menus, paginate_categories

router = APIRouter(prefix="/admin", tags=["admin: categories"], dependencies=[Depends(require_admin)])
logger = logging.getLogger(__name__)


async def _get_category_or_404(db: AsyncSession, category_id: str) -> Category:
    category = await db.get(Category, category_id)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


async def _read_category(request: Request) -> CategoryWrite:
    return CategoryWrite.model_validate(await read_json_body(request))


async def _ensure_name_free(db: AsyncSession, name: str, exclude_id: str | None = None) -> None:
    query = select(Category.id).where(Category.name == name)
    if exclude_id is not None:
        query = query.where(Category.id != exclude_id)
    if (await db.execute(query.limit(1))).scalar_one_or_none() is not None:
        raise HTTPException(status_code=400, detail="Category with this name already exists")


@router.get("/categories", response_model=CategoryListResponse)
async def list_categories(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: str | None = None,
    db: AsyncSession = Depends(get_db),
) -> CategoryListResponse:
    rows, total = await paginate_categories(db, page, limit, search)
    return CategoryListResponse(
        categories=[CategoryRead.from_row(category, count) for category, count in rows],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("/categories", response_model=CategoryMutationResponse, status_code=201)
async def create_category(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> CategoryMutationResponse:
    body = await _read_category(request)
    await _ensure_name_free(db, body.name)

    category = Category(name=body.name)
    db.add(category)
    await db.commit()
    await db.refresh(category)
    logger.info("Created category %s (%s)", category.name, category.id)
    return CategoryMutationResponse(
        message="Category created successfully",
        category=CategoryRead.from_row(category, 0),
    )


@router.get("/categories/{category_id}", response_model=CategoryResponse)
async def get_category(
    category_id: str,
    db: AsyncSession = Depends(get_db),
) -> CategoryResponse:
    result = await db.execute(
        select(Category).where(Category.id == category_id).options(selectinload(Category.menus))
    )
    category = result.scalar_one_or_none()
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")

    menus: list[Menu] = sorted(category.menus, key=lambda m: m.created_at, reverse=True)
    return CategoryResponse(
        category=CategoryDetail(
            **CategoryRead.from_row(category, len(menus)).model_dump(),
            menus=[CategoryMenuItem.model_validate(m) for m in menus],
        )
    )


@router.put("/categories/{category_id}", response_model=CategoryMutationResponse)
async def update_category(
    category_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> CategoryMutationResponse:
    body = await _read_category(request)
    category = await _get_category_or_404(db, category_id)
    await _ensure_name_free(db, body.name, exclude_id=category_id)

    category.name = body.name
    await db.commit()
    await db.refresh(category)
    logger.info("Updated category %s", category_id)
    return CategoryMutationResponse(
        message="Category updated successfully",
        category=CategoryRead.from_row(category, await count_menus(db, category_id)),
    )


@router.delete("/categories/{category_id}", response_model=MessageResponse)
async def delete_category(
    category_id: str,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    category = await _get_category_or_404(db, category_id)

    menu_count = await count_menus(db, category_id)
    if menu_count > 0:
        raise HTTPException(
            status_code=400,
            detail={"error": "Cannot delete category with existing menus", "menuCount": menu_count},
        )

    await db.delete(category)
    await db.commit()
    logger.info("Deleted category %s (%s)", category.name, category_id)
    return MessageResponse(message="Category deleted successfully")
