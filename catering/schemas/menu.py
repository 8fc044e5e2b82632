"""Pydantic schemas for Menu CRUD."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from urllib.parse import urlparse

from pydantic import Field, field_validator, model_validator

from catering.schemas.common import CamelModel, Pagination

MenuStatus = Literal["DRAFT", "PUBLISHED"]

MAX_MENU_NAME = 200
# Numeric(10, 2) column ceiling
MAX_PRICE = 99_999_999.99


def _check_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Name is required")
    if len(v) > MAX_MENU_NAME:
        raise ValueError("Name too long")
    return v


def _to_cents(v: float | None) -> float | None:
    if v is None:
        return None
    v = round(v, 2)
    if v <= 0:
        raise ValueError("Must be at least 0.01")
    return v


def _check_description(v: list[str]) -> list[str]:
    if not v:
        raise ValueError("At least one description is required")
    return v


class MenuCreate(CamelModel):
    name: str
    description: list[str]
    price: float = Field(gt=0, le=MAX_PRICE)
    discounted_price: float | None = Field(default=None, gt=0, le=MAX_PRICE)
    discount_percent: int | None = Field(default=None, ge=0, le=100)
    status: MenuStatus = "DRAFT"
    image_alt: str | None = None
    category_id: str = Field(min_length=1)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("description")
    @classmethod
    def _description(cls, v: list[str]) -> list[str]:
        return _check_description(v)

    @field_validator("price", "discounted_price")
    @classmethod
    def _two_decimals(cls, v: float | None) -> float | None:
        return _to_cents(v)

    @model_validator(mode="after")
    def _discount_below_price(self) -> "MenuCreate":
        if self.discounted_price is not None and self.discounted_price > self.price:
            raise ValueError("Discounted price cannot exceed price")
        return self


class MenuUpdate(CamelModel):
    name: str | None = None
    description: list[str] | None = None
    price: float | None = Field(default=None, gt=0, le=MAX_PRICE)
    discounted_price: float | None = Field(default=None, gt=0, le=MAX_PRICE)
    discount_percent: int | None = Field(default=None, ge=0, le=100)
    status: MenuStatus | None = None
    image_url: str | None = None
    image_key: str | None = None
    image_alt: str | None = None
    category_id: str | None = Field(default=None, min_length=1)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        return None if v is None else _check_name(v)

    @field_validator("description")
    @classmethod
    def _description(cls, v: list[str] | None) -> list[str] | None:
        return None if v is None else _check_description(v)

    @field_validator("price", "discounted_price")
    @classmethod
    def _two_decimals(cls, v: float | None) -> float | None:
        return _to_cents(v)

    @field_validator("image_url")
    @classmethod
    def _image_url(cls, v: str | None) -> str | None:
        if v is None:
            return None
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Invalid image URL")
        return v

    @model_validator(mode="after")
    def _required_not_null(self) -> "MenuUpdate":
        for field in ("name", "description", "price", "status", "category_id"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class CategoryRef(CamelModel):
    id: str
    name: str


class MenuRead(CamelModel):
    id: str
    name: str
    slug: str
    description: list[str]
    price: float
    discounted_price: float | None
    discount_percent: int | None
    status: str
    image_url: str | None
    image_key: str | None
    image_alt: str | None
    category_id: str
    created_at: datetime | None
    updated_at: datetime | None
    category: CategoryRef


class MenuListResponse(CamelModel):
    menus: list[MenuRead]
    pagination: Pagination


class MenuResponse(CamelModel):
    menu: MenuRead


class MenuMutationResponse(CamelModel):
    message: str
    menu: MenuRead
