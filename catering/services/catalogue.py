"""
Catalogue helpers shared by the admin and public routes: discount
derivation, slug generation and the menu-count subquery.
"""

from __future__ import annotations

import re
import secrets
import unicodedata
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from catering.models.catalogue import Category, Menu

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def compute_discount_percent(price: float, discounted_price: float) -> int | None:
    """Percentage off *price*, rounded half-up to a whole number.

    ``None`` when *price* is not positive.
    """
    price_d = Decimal(str(price))
    if price_d <= 0:
        return None
    off = (price_d - Decimal(str(discounted_price))) / price_d * 100
    return int(off.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def slugify(value: str) -> str:
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = _SLUG_STRIP.sub("-", value.lower()).strip("-")
    return slug or "menu"


async def unique_menu_slug(db: AsyncSession, name: str, exclude_id: str | None = None) -> str:
    """Slug for *name*, suffixed with a short random tag if already taken."""
    base = slugify(name)
    slug = base
    while True:
        query = select(Menu.id).where(Menu.slug == slug)
        if exclude_id is not None:
            query = query.where(Menu.id != exclude_id)
        if (await db.execute(query.limit(1))).scalar_one_or_none() is None:
            return slug
        slug = f"{base}-{secrets.token_hex(3)}"


def menu_count_subquery():
    return (
        select(Menu.category_id, func.count(Menu.id).label("menu_count"))
        .group_by(Menu.category_id)
        .subquery()
    )


def categories_with_counts() -> Select:
    """``SELECT category, coalesce(menu_count, 0)`` — filter/paginate on top."""
    counts = menu_count_subquery()
    return select(Category, func.coalesce(counts.c.menu_count, 0)).outerjoin(
        counts, counts.c.category_id == Category.id
    )


_JSON_SYNTAX = frozenset('[]"\\')


def searchable_in_json_text(term: str) -> bool:
    """Whether a substring match of *term* against a serialised JSON string
    list can only hit element contents, never the list syntax around them.
    """
    if _JSON_SYNTAX.intersection(term):
        return False
    return bool(term.strip(", "))


def escape_like(term: str) -> str:
    return term.replace("\\", r"\\").replace("%", r"\%").replace("_", r"\_")


async def paginate_categories(
    db: AsyncSession, page: int, limit: int, search: str | None
) -> tuple[list[tuple[Category, int]], int]:
    """One page of categories (newest first) with their menu counts, plus the total."""
    filters = []
    if search:
        filters.append(Category.name.ilike(f"%{escape_like(search)}%", escape="\\"))

    total = (await db.execute(select(func.count(Category.id)).where(*filters))).scalar_one()
    result = await db.execute(
        categories_with_counts()
        .where(*filters)
        .order_by(Category.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return [(category, count) for category, count in result.all()], total


async def count_menus(db: AsyncSession, category_id: str) -> int:
    result = await db.execute(select(func.count(Menu.id)).where(Menu.category_id == category_id))
    return result.scalar_one()
