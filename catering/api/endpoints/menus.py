"""
Admin Menu CRUD with optional image upload.

POST and PUT accept either a JSON body or ``multipart/form-data`` carrying
the menu as JSON text in a ``data`` field plus an optional ``image`` file.

Image writes follow upload -> database write -> cleanup: a fresh upload is
removed again if the write fails, and a replaced image is only removed after
the new record has been committed. Image removals never fail the request.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from starlette.datastructures import UploadFile

from catering.api.deps import get_db, read_json_body, require_admin
from catering.models.catalogue import MENU_STATUSES, Category, Menu
from catering.schemas.common import MessageResponse, Pagination
from catering.schemas.menu import (
    MenuCreate,
    MenuListResponse,
    MenuMutationResponse,
    MenuRead,
    MenuResponse,
    MenuUpdate,
)
from catering.services.catalogue import (
    compute_discount_percent,
    escape_like,
    searchable_in_json_text,
    unique_menu_slug,
)
from catering.services.storage import (
    ImageValidationError,
    StorageError,
    SupabaseStorage,
    UploadResult,
    get_storage,
)

router = APIRouter(prefix="/admin", tags=["admin: menus"], dependencies=[Depends(require_admin)])
logger = logging.getLogger(__name__)

MENU_IMAGE_FOLDER = "menus"


# ── Helpers ─────────────────────────────────────────────────────────
async def _read_payload(request: Request, data_required: bool) -> tuple[dict[str, Any], UploadFile | None]:
    """Return the menu fields and the uploaded image (if any) from a JSON or multipart body."""
    image: UploadFile | None = None
    content_type = request.headers.get("content-type", "")

    if "multipart/form-data" in content_type:
        form = await request.form()
        raw = form.get("data")
        candidate = form.get("image")
        if isinstance(candidate, UploadFile) and (candidate.size is None or candidate.size > 0):
            image = candidate
        if not raw:
            if data_required:
                raise HTTPException(status_code=400, detail="Menu data is required")
            return {}, image
        if isinstance(raw, UploadFile):
            raw = (await raw.read()).decode("utf-8", errors="replace")
        try:
            payload = json.loads(raw)
        except ValueError:
            raise HTTPException(status_code=400, detail="Menu data must be valid JSON")
    else:
        payload = await read_json_body(request)

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Menu data must be a JSON object")
    return payload, image


async def _upload(storage: SupabaseStorage, image: UploadFile) -> UploadResult:
    try:
        return await storage.upload_image(image, MENU_IMAGE_FOLDER)
    except ImageValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except StorageError:
        raise HTTPException(status_code=500, detail="Failed to upload image")


async def _discard_image(storage: SupabaseStorage, key: str) -> None:
    try:
        await storage.delete(key)
    except StorageError as exc:
        logger.error("Failed to delete image %s: %s", key, exc)


async def _ensure_category(db: AsyncSession, category_id: str) -> None:
    if await db.get(Category, category_id) is None:
        raise HTTPException(status_code=400, detail="Category not found")


async def _load_menu(db: AsyncSession, menu_id: str) -> Menu | None:
    result = await db.execute(
        select(Menu)
        .where(Menu.id == menu_id)
        .options(selectinload(Menu.category))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _commit_or_discard(db: AsyncSession, storage: SupabaseStorage, upload: UploadResult | None) -> None:
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        if upload is not None:
            await _discard_image(storage, upload.key)
        raise


# ── Routes ──────────────────────────────────────────────────────────
@router.get("/menus", response_model=MenuListResponse)
async def list_menus(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: str | None = None,
    category_id: str | None = Query(default=None, alias="categoryId"),
    status: str | None = None,
    db: AsyncSession = Depends(get_db),
) -> MenuListResponse:
    filters = []
    if search:
        pattern = f"%{escape_like(search)}%"
        clauses = [Menu.name.ilike(pattern, escape="\\")]
        if searchable_in_json_text(search):
            clauses.append(cast(Menu.description, String).ilike(pattern, escape="\\"))
        filters.append(or_(*clauses))
    if category_id:
        filters.append(Menu.category_id == category_id)
    if status in MENU_STATUSES:
        filters.append(Menu.status == status)

    total = (await db.execute(select(func.count(Menu.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(Menu)
        .where(*filters)
        .options(selectinload(Menu.category))
        .order_by(Menu.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return MenuListResponse(
        menus=[MenuRead.model_validate(m) for m in result.scalars().all()],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("/menus", response_model=MenuMutationResponse, status_code=201)
async def create_menu(
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: SupabaseStorage = Depends(get_storage),
) -> MenuMutationResponse:
    payload, image = await _read_payload(request, data_required=True)
    data = MenuCreate.model_validate(payload)
    await _ensure_category(db, data.category_id)

    discount_percent = data.discount_percent
    if data.discounted_price is not None:
        discount_percent = compute_discount_percent(data.price, data.discounted_price)

    menu = Menu(
        name=data.name,
        slug=await unique_menu_slug(db, data.name),
        description=data.description,
        price=data.price,
        discounted_price=data.discounted_price,
        discount_percent=discount_percent,
        status=data.status,
        image_alt=data.image_alt,
        category_id=data.category_id,
    )

    upload = await _upload(storage, image) if image is not None else None
    if upload is not None:
        menu.image_url = upload.url
        menu.image_key = upload.key
        menu.image_alt = data.image_alt or data.name

    db.add(menu)
    await _commit_or_discard(db, storage, upload)
    logger.info("Created menu %s (%s)", menu.name, menu.id)

    return MenuMutationResponse(
        message="Menu created successfully",
        menu=MenuRead.model_validate(await _load_menu(db, menu.id)),
    )


@router.get("/menus/{menu_id}", response_model=MenuResponse)
async def get_menu(
    menu_id: str,
    db: AsyncSession = Depends(get_db),
) -> MenuResponse:
    menu = await _load_menu(db, menu_id)
    if menu is None:
        raise HTTPException(status_code=404, detail="Menu not found")
    return MenuResponse(menu=MenuRead.model_validate(menu))


@router.put("/menus/{menu_id}", response_model=MenuMutationResponse)
async def update_menu(
    menu_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: SupabaseStorage = Depends(get_storage),
) -> MenuMutationResponse:
    payload, image = await _read_payload(request, data_required=False)
    data = MenuUpdate.model_validate(payload)

    menu = await db.get(Menu, menu_id)
    if menu is None:
        raise HTTPException(status_code=404, detail="Menu not found")

    changes = data.model_dump(exclude_unset=True)
    if "category_id" in changes:
        await _ensure_category(db, changes["category_id"])

    # Discount percent is derived whenever the record ends up with both prices.
    if "discounted_price" in changes and changes["discounted_price"] is None:
        changes["discount_percent"] = None
    else:
        price = changes.get("price", menu.price)
        discounted = changes.get("discounted_price", menu.discounted_price)
        if discounted is not None:
            if discounted > price:
                raise HTTPException(status_code=400, detail="Discounted price cannot exceed price")
            changes["discount_percent"] = compute_discount_percent(price, discounted)

    if "name" in changes and changes["name"] != menu.name:
        changes["slug"] = await unique_menu_slug(db, changes["name"], exclude_id=menu.id)

    upload = await _upload(storage, image) if image is not None else None
    if upload is not None:
        changes["image_url"] = upload.url
        changes["image_key"] = upload.key
        changes["image_alt"] = changes.get("image_alt") or menu.image_alt or changes.get("name", menu.name)

    old_image_key = menu.image_key
    for field, value in changes.items():
        setattr(menu, field, value)

    await _commit_or_discard(db, storage, upload)
    logger.info("Updated menu %s", menu_id)

    if old_image_key and old_image_key != menu.image_key:
        await _discard_image(storage, old_image_key)

    return MenuMutationResponse(
        message="Menu updated successfully",
        menu=MenuRead.model_validate(await _load_menu(db, menu_id)),
    )


@router.delete("/menus/{menu_id}", response_model=MessageResponse)
async def delete_menu(
    menu_id: str,
    db: AsyncSession = Depends(get_db),
    storage: SupabaseStorage = Depends(get_storage),
) -> MessageResponse:
    menu = await db.get(Menu, menu_id)
    if menu is None:
        raise HTTPException(status_code=404, detail="Menu not found")

    image_key = menu.image_key
    await db.delete(menu)
    await db.commit()
    logger.info("Deleted menu %s (%s)", menu.name, menu_id)

    if image_key:
        await _discard_image(storage, image_key)

    return MessageResponse(message="Menu deleted successfully")
