"""Pydantic schemas for Category CRUD."""

from __future__ import annotations

from datetime import datetime

from pydantic import field_validator

from catering.schemas.common import CamelModel, Pagination

MAX_CATEGORY_NAME = 100


class CategoryWrite(CamelModel):
    name: str

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        if len(v) > MAX_CATEGORY_NAME:
            raise ValueError("Name too long")
        return v


class CategoryRead(CamelModel):
    id: str
    name: str
    created_at: datetime | None
    updated_at: datetime | None
    menu_count: int = 0

    @classmethod
    def from_row(cls, category, menu_count: int) -> "CategoryRead":
        return cls(
            id=category.id,
            name=category.name,
            created_at=category.created_at,
            updated_at=category.updated_at,
            menu_count=menu_count,
        )


class CategoryMenuItem(CamelModel):
    id: str
    name: str
    status: str
    created_at: datetime | None


class CategoryDetail(CategoryRead):
    menus: list[CategoryMenuItem] = []


class CategoryListResponse(CamelModel):
    categories: list[CategoryRead]
    pagination: Pagination


class CategoryResponse(CamelModel):
    category: CategoryDetail


class CategoryMutationResponse(CamelModel):
    message: str
    category: CategoryRead
