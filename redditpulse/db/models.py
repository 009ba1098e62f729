# redditpulse/db/models.py
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, Index, Text, UniqueConstraint, func, text


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Post(SQLModel, table=True):
    __tablename__ = "posts"

    id: Optional[int] = Field(default=None, primary_key=True)

    # Source-native id (reddit "t3" id without prefix), dedup key
    reddit_id: str = Field(nullable=False, unique=True, index=True, max_length=32)

    # ----- Content -----
    title: str = Field(nullable=False)
    content: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    author: Optional[str] = Field(default=None, max_length=100)

    # ----- Engagement -----
    score: int = Field(default=0)
    num_comments: int = Field(default=0, ge=0)

    # ----- Links / presentation -----
    url: Optional[str] = None
    permalink: Optional[str] = None
    thumbnail: Optional[str] = None
    link_flair_text: Optional[str] = Field(default=None, max_length=100)

    # ----- AI -----
    ai_summary: Optional[str] = Field(default=None, max_length=200)

    # ----- Timestamps -----
    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    scraped_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(
            DateTime(timezone=True),
            nullable=False,
            server_default=func.now(),
        ),
    )


class Category(SQLModel, table=True):
    __tablename__ = "categories"
    __table_args__ = (
        # Names are unique within the active set only; deactivated rows keep history
        Index(
            "uq_categories_active_name",
            "name",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, max_length=100)
    description: Optional[str] = None

    # null parent = top-level (level 0)
    parent_id: Optional[int] = Field(default=None, foreign_key="categories.id", index=True)
    level: int = Field(default=0, ge=0, le=1)
    sort_order: int = Field(default=0)

    is_active: bool = Field(default=True, index=True)
    taxonomy_version: int = Field(default=1, index=True)

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=func.now()),
    )


class ProductArea(SQLModel, table=True):
    __tablename__ = "product_areas"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, max_length=100)
    description: Optional[str] = None
    is_active: bool = Field(default=True, index=True)
    sort_order: int = Field(default=0)


class PostCategory(SQLModel, table=True):
    __tablename__ = "post_categories"
    __table_args__ = (UniqueConstraint("post_id", "category_id", name="uq_post_category"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    post_id: int = Field(foreign_key="posts.id", index=True)
    category_id: int = Field(foreign_key="categories.id", index=True)
    confidence: float = Field(ge=0, le=1)
    taxonomy_version: int = Field(default=1, index=True)

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=func.now()),
    )


class PostProductArea(SQLModel, table=True):
    __tablename__ = "post_product_areas"
    __table_args__ = (
        UniqueConstraint("post_id", "product_area_id", name="uq_post_product_area"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    post_id: int = Field(foreign_key="posts.id", index=True)
    product_area_id: int = Field(foreign_key="product_areas.id", index=True)
    confidence: float = Field(ge=0, le=1)

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=func.now()),
    )


class CategoryRequest(SQLModel, table=True):
    """User-submitted topic suggestion. Reviewed by humans only."""

    __tablename__ = "category_requests"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, max_length=100)
    description: Optional[str] = None
    status: str = Field(default="pending", max_length=20)

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=func.now()),
    )
