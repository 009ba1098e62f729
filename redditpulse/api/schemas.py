from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from pydantic import ConfigDict

# =========================================================
# TAXONOMY
# =========================================================

class CategoryRef(BaseModel):
    id: int
    name: str
    parent_id: Optional[int] = None
    level: int
    parent_name: Optional[str] = None


class PostCategoryOut(BaseModel):
    confidence: float
    categories: CategoryRef


class ProductAreaRef(BaseModel):
    id: int
    name: str


class PostProductAreaOut(BaseModel):
    confidence: float
    product_areas: ProductAreaRef


class CategoryNode(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    parent_id: Optional[int] = None
    level: int
    sort_order: int
    post_count: int
    children: List["CategoryNode"] = []


class CategoryTreeOut(BaseModel):
    data: List[CategoryNode]
    flat: List[CategoryNode]


class ProductAreaOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    sort_order: int
    post_count: int


# =========================================================
# POSTS (PUBLIC)
# =========================================================

class PostOut(BaseModel):
    id: int
    reddit_id: str
    title: str
    content: str
    author: Optional[str]
    score: int
    num_comments: int

    url: Optional[str]
    permalink: Optional[str]
    thumbnail: Optional[str]
    link_flair_text: Optional[str]
    ai_summary: Optional[str]

    created_at: datetime
    scraped_at: datetime

    post_categories: List[PostCategoryOut] = []
    post_product_areas: List[PostProductAreaOut] = []

    model_config = ConfigDict(from_attributes=True)


# =========================================================
# LIST / PAGINATION
# =========================================================

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)


class PostListOut(BaseModel):
    data: List[PostOut]
    pagination: Pagination


# =========================================================
# ANALYTICS
# =========================================================

class SummaryOut(BaseModel):
    total_posts: int = Field(alias="totalPosts")
    total_categories: int = Field(alias="totalCategories")
    recent_posts: int = Field(alias="recentPosts")
    avg_score: float = Field(alias="avgScore")

    model_config = ConfigDict(populate_by_name=True)


class TrendDataset(BaseModel):
    label: str
    data: List[float]


class TrendsOut(BaseModel):
    labels: List[str]
    datasets: List[TrendDataset]


# =========================================================
# SCRAPER
# =========================================================

class ScrapeTriggerOut(BaseModel):
    message: str
    status: str
    timestamp: datetime


class ScrapeStatusOut(BaseModel):
    running: bool
    last_scrape: Optional[datetime] = None
    total_posts: int
    last_run: Optional[Dict[str, Any]] = None
    last_error: Optional[str] = None


# =========================================================
# CATEGORY REQUESTS
# =========================================================

class CategoryRequestIn(BaseModel):
    name: str = Field(..., max_length=100)
    description: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        if isinstance(v, str):
            v = v.strip()
        if not v:
            raise ValueError("Category name is required")
        return v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v):
        if v is None:
            return None
        return v.strip() or None


class CategoryRequestOut(BaseModel):
    id: int
    name: str
    description: Optional[str]
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
