"""Pydantic schemas for the public catalogue."""

from __future__ import annotations

from catering.schemas.common import CamelModel


class PublicMenu(CamelModel):
    id: str
    name: str
    description: list[str]
    price: float
    discounted_price: float | None = None
    discount_percent: int | None = None
    image_url: str | None = None
    image_alt: str | None = None


class PublicCategory(CamelModel):
    id: str
    name: str
    menus: list[PublicMenu]


class PublicMenuResponse(CamelModel):
    categories: list[PublicCategory]


class HealthResponse(CamelModel):
    db: bool
    storage: bool
