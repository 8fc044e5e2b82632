"""
Category & Menu models — the catering catalogue.

A Menu always belongs to exactly one Category; the foreign key restricts
deletes so a category can only go once it owns no menus.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from catering.db.base import Base
from catering.models.user import _new_id, _utcnow

STATUS_DRAFT = "DRAFT"
STATUS_PUBLISHED = "PUBLISHED"
MENU_STATUSES = (STATUS_DRAFT, STATUS_PUBLISHED)


class Category(Base):
    __tablename__ = "categories"

    id: str = Column(String(36), primary_key=True, default=_new_id)  # type: ignore[assignment]
    name: str = Column(String(100), unique=True, nullable=False)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=_utcnow, index=True)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )

    menus = relationship("Menu", back_populates="category", passive_deletes="all")


class Menu(Base):
    __tablename__ = "menus"

    id: str = Column(String(36), primary_key=True, default=_new_id)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    slug: str = Column(String(250), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    description: list[str] = Column(JSON, nullable=False, default=list)  # type: ignore[assignment]
    price: float = Column(Numeric(10, 2, asdecimal=False), nullable=False)  # type: ignore[assignment]
    discounted_price: float | None = Column(Numeric(10, 2, asdecimal=False), nullable=True)  # type: ignore[assignment]
    discount_percent: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(10),
        nullable=False,
        default=STATUS_DRAFT,
        server_default=STATUS_DRAFT,
        index=True,
    )  # DRAFT | PUBLISHED
    image_url: str | None = Column(String(1024), nullable=True)  # type: ignore[assignment]
    image_key: str | None = Column(String(512), nullable=True)  # type: ignore[assignment]
    image_alt: str | None = Column(String(300), nullable=True)  # type: ignore[assignment]
    category_id: str = Column(  # type: ignore[assignment]
        String(36),
        ForeignKey("categories.id", ondelete="RESTRICT", onupdate="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: datetime = Column(DateTime(timezone=True), default=_utcnow, index=True)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )

    category = relationship("Category", back_populates="menus")
