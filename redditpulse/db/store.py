# redditpulse/db/store.py
"""Async persistence operations used by the pipelines and the API."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import delete, exists, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from redditpulse.classification.taxonomy import (
    CategoryDefinition,
    ProductAreaDefinition,
    TaxonomySnapshot,
    validate_category_tree,
)
from redditpulse.core.exceptions import StoreWriteError
from redditpulse.core.logger import logger
from redditpulse.db.models import (
    Category,
    CategoryRequest,
    Post,
    PostCategory,
    PostProductArea,
    ProductArea,
)

SORTABLE_FIELDS = {
    "created_at": Post.created_at,
    "score": Post.score,
    "num_comments": Post.num_comments,
    "title": Post.title,
    "scraped_at": Post.scraped_at,
}


# =========================================================
# POSTS
# =========================================================
class PostStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def exists(self, reddit_id: str) -> bool:
        found = await self.db.scalar(select(Post.id).where(Post.reddit_id == reddit_id))
        return found is not None

    async def get(self, post_id: int) -> Optional[Post]:
        return await self.db.get(Post, post_id)

    async def insert_if_absent(self, post: Post) -> Optional[Post]:
        """
        Insert ``post`` unless its reddit_id is already stored.
        - Returns the stored row, or None when it was a duplicate.
        - Raises StoreWriteError on any other database failure.
        """
        if await self.exists(post.reddit_id):
            return None

        try:
            self.db.add(post)
            await self.db.commit()
            await self.db.refresh(post)
            return post
        except IntegrityError:
            # lost a race with a concurrent run; the row exists now
            await self.db.rollback()
            logger.info("Post %s inserted concurrently, skipping", post.reddit_id)
            return None
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreWriteError(f"Could not insert post {post.reddit_id}: {e}") from e

    async def list_posts(
        self,
        *,
        page: int = 1,
        limit: int = 20,
        category_ids: Optional[Sequence[int]] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[Post], int]:
        filters = []

        if category_ids is not None:
            filters.append(
                Post.id.in_(
                    select(PostCategory.post_id).where(PostCategory.category_id.in_(list(category_ids)))
                )
            )

        if search:
            filters.append(
                or_(
                    Post.title.ilike(f"%{search}%"),
                    Post.content.ilike(f"%{search}%"),
                )
            )

        total = await self.db.scalar(select(func.count(Post.id)).where(*filters))

        column = SORTABLE_FIELDS.get(sort_by, Post.created_at)
        ordering = column.asc() if sort_order == "asc" else column.desc()

        result = await self.db.scalars(
            select(Post)
            .where(*filters)
            .order_by(ordering, Post.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.all()), total or 0

    async def count(self, since: Optional[datetime] = None) -> int:
        stmt = select(func.count(Post.id))
        if since is not None:
            stmt = stmt.where(Post.created_at >= since)
        return await self.db.scalar(stmt) or 0

    async def average_score(self) -> float:
        avg = await self.db.scalar(select(func.avg(Post.score)))
        return float(avg or 0.0)

    async def latest_scraped_at(self) -> Optional[datetime]:
        return await self.db.scalar(select(func.max(Post.scraped_at)))

    async def created_since(self, since: datetime) -> List[Tuple[int, datetime]]:
        result = await self.db.execute(
            select(Post.id, Post.created_at).where(Post.created_at >= since).order_by(Post.created_at)
        )
        return [(row.id, row.created_at) for row in result]

    async def without_summary(self, limit: int) -> List[Post]:
        result = await self.db.scalars(
            select(Post).where(Post.ai_summary.is_(None)).order_by(Post.created_at.desc()).limit(limit)
        )
        return list(result.all())

    async def set_summary(self, post_id: int, summary: str) -> None:
        try:
            await self.db.execute(update(Post).where(Post.id == post_id).values(ai_summary=summary))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreWriteError(f"Could not store summary for post {post_id}: {e}") from e


# =========================================================
# TAXONOMY + ASSIGNMENTS
# =========================================================
class ClassificationStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # -------------------------
    # Taxonomy reads
    # -------------------------
    async def current_taxonomy_version(self) -> int:
        version = await self.db.scalar(
            select(func.max(Category.taxonomy_version)).where(Category.is_active.is_(True))
        )
        return version or 1

    async def active_categories(self) -> List[Category]:
        result = await self.db.scalars(
            select(Category)
            .where(Category.is_active.is_(True))
            .order_by(Category.level, Category.sort_order, Category.id)
        )
        return list(result.all())

    async def active_product_areas(self) -> List[ProductArea]:
        result = await self.db.scalars(
            select(ProductArea)
            .where(ProductArea.is_active.is_(True))
            .order_by(ProductArea.sort_order, ProductArea.id)
        )
        return list(result.all())

    async def snapshot(self) -> TaxonomySnapshot:
        categories = await self.active_categories()
        product_areas = await self.active_product_areas()
        version = await self.current_taxonomy_version()
        return TaxonomySnapshot.from_rows(categories, product_areas, version=version)

    async def resolve_category_filter(self, name: str) -> Optional[List[int]]:
        """
        Category ids a name filter expands to.
        - Parent name: all of its active children.
        - Child name: itself.
        - Unknown name: None (no filtering).
        """
        category = await self.db.scalar(
            select(Category).where(Category.name == name, Category.is_active.is_(True))
        )
        if category is None:
            return None

        children = await self.db.scalars(
            select(Category.id).where(Category.parent_id == category.id, Category.is_active.is_(True))
        )
        child_ids = list(children.all())
        if category.level == 0 and child_ids:
            return child_ids
        if category.level == 0:
            return []
        return [category.id]

    # -------------------------
    # Assignment checks
    # -------------------------
    async def has_category_assignments(self, post_id: int, taxonomy_version: int) -> bool:
        return bool(
            await self.db.scalar(
                select(
                    exists().where(
                        PostCategory.post_id == post_id,
                        PostCategory.taxonomy_version == taxonomy_version,
                    )
                )
            )
        )

    async def has_product_area_assignments(self, post_id: int) -> bool:
        return bool(
            await self.db.scalar(select(exists().where(PostProductArea.post_id == post_id)))
        )

    async def posts_without_categories(self, taxonomy_version: int, limit: int) -> List[Post]:
        classified = select(PostCategory.post_id).where(PostCategory.taxonomy_version == taxonomy_version)
        result = await self.db.scalars(
            select(Post).where(Post.id.not_in(classified)).order_by(Post.created_at.desc()).limit(limit)
        )
        return list(result.all())

    async def posts_without_product_areas(self, limit: int) -> List[Post]:
        classified = select(PostProductArea.post_id)
        result = await self.db.scalars(
            select(Post).where(Post.id.not_in(classified)).order_by(Post.created_at.desc()).limit(limit)
        )
        return list(result.all())

    async def count_without_categories(self, taxonomy_version: int) -> int:
        classified = select(PostCategory.post_id).where(PostCategory.taxonomy_version == taxonomy_version)
        return await self.db.scalar(
            select(func.count(Post.id)).where(Post.id.not_in(classified))
        ) or 0

    async def count_without_product_areas(self) -> int:
        classified = select(PostProductArea.post_id)
        return await self.db.scalar(
            select(func.count(Post.id)).where(Post.id.not_in(classified))
        ) or 0

    # -------------------------
    # Assignment writes
    # -------------------------
    async def insert_category_assignments(
        self, post_id: int, assignments: Iterable[Tuple[int, float]], taxonomy_version: int
    ) -> int:
        rows = [
            PostCategory(
                post_id=post_id,
                category_id=category_id,
                confidence=confidence,
                taxonomy_version=taxonomy_version,
            )
            for category_id, confidence in assignments
        ]
        return await self._insert_batch(rows, f"categories for post {post_id}")

    async def insert_product_area_assignments(
        self, post_id: int, assignments: Iterable[Tuple[int, float]]
    ) -> int:
        rows = [
            PostProductArea(post_id=post_id, product_area_id=area_id, confidence=confidence)
            for area_id, confidence in assignments
        ]
        return await self._insert_batch(rows, f"product areas for post {post_id}")

    async def _insert_batch(self, rows: list, what: str) -> int:
        if not rows:
            return 0
        try:
            self.db.add_all(rows)
            await self.db.commit()
            return len(rows)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreWriteError(f"Could not insert {what}: {e}") from e

    # -------------------------
    # Joined reads
    # -------------------------
    async def category_assignments_for(
        self, post_ids: Sequence[int], taxonomy_version: int
    ) -> Dict[int, List[dict]]:
        if not post_ids:
            return {}

        parent = aliased(Category)
        result = await self.db.execute(
            select(
                PostCategory.post_id,
                PostCategory.confidence,
                Category.id,
                Category.name,
                Category.parent_id,
                Category.level,
                parent.name.label("parent_name"),
            )
            .join(Category, Category.id == PostCategory.category_id)
            .outerjoin(parent, parent.id == Category.parent_id)
            .where(
                PostCategory.post_id.in_(list(post_ids)),
                PostCategory.taxonomy_version == taxonomy_version,
            )
            .order_by(PostCategory.post_id, PostCategory.confidence.desc())
        )

        grouped: Dict[int, List[dict]] = defaultdict(list)
        for row in result:
            grouped[row.post_id].append(
                {
                    "confidence": row.confidence,
                    "categories": {
                        "id": row.id,
                        "name": row.name,
                        "parent_id": row.parent_id,
                        "level": row.level,
                        "parent_name": row.parent_name,
                    },
                }
            )
        return dict(grouped)

    async def product_area_assignments_for(self, post_ids: Sequence[int]) -> Dict[int, List[dict]]:
        if not post_ids:
            return {}

        result = await self.db.execute(
            select(PostProductArea.post_id, PostProductArea.confidence, ProductArea.id, ProductArea.name)
            .join(ProductArea, ProductArea.id == PostProductArea.product_area_id)
            .where(PostProductArea.post_id.in_(list(post_ids)))
            .order_by(PostProductArea.post_id, PostProductArea.confidence.desc())
        )

        grouped: Dict[int, List[dict]] = defaultdict(list)
        for row in result:
            grouped[row.post_id].append(
                {"confidence": row.confidence, "product_areas": {"id": row.id, "name": row.name}}
            )
        return dict(grouped)

    async def category_post_counts(self, taxonomy_version: int) -> Dict[int, int]:
        result = await self.db.execute(
            select(PostCategory.category_id, func.count(PostCategory.id))
            .where(PostCategory.taxonomy_version == taxonomy_version)
            .group_by(PostCategory.category_id)
        )
        return {category_id: count for category_id, count in result}

    async def product_area_post_counts(self) -> Dict[int, int]:
        result = await self.db.execute(
            select(PostProductArea.product_area_id, func.count(PostProductArea.id))
            .group_by(PostProductArea.product_area_id)
        )
        return {area_id: count for area_id, count in result}

    async def category_names_for_posts_since(
        self, since: datetime, taxonomy_version: int
    ) -> List[Tuple[int, str]]:
        result = await self.db.execute(
            select(PostCategory.post_id, Category.name)
            .join(Category, Category.id == PostCategory.category_id)
            .join(Post, Post.id == PostCategory.post_id)
            .where(Post.created_at >= since, PostCategory.taxonomy_version == taxonomy_version)
        )
        return [(row.post_id, row.name) for row in result]

    async def product_area_names_for_posts_since(self, since: datetime) -> List[Tuple[int, str]]:
        result = await self.db.execute(
            select(PostProductArea.post_id, ProductArea.name)
            .join(ProductArea, ProductArea.id == PostProductArea.product_area_id)
            .join(Post, Post.id == PostProductArea.post_id)
            .where(Post.created_at >= since)
        )
        return [(row.post_id, row.name) for row in result]

    async def active_category_count(self) -> int:
        return await self.db.scalar(
            select(func.count(Category.id)).where(Category.is_active.is_(True))
        ) or 0

    # -------------------------
    # Re-taxonomy (admin)
    # -------------------------
    async def replace_category_taxonomy(self, tree: Sequence[CategoryDefinition]) -> int:
        """
        Swap in a new category tree in one transaction.
        Deactivates every active category, deletes the assignments made under
        the old taxonomy and inserts the new tree under a bumped version.
        """
        validate_category_tree(tree)

        try:
            latest = await self.db.scalar(select(func.max(Category.taxonomy_version)))
            version = (latest or 0) + 1

            await self.db.execute(
                update(Category).where(Category.is_active.is_(True)).values(is_active=False)
            )
            await self.db.execute(delete(PostCategory))

            for i, parent_def in enumerate(tree):
                parent = Category(
                    name=parent_def.name,
                    description=parent_def.description,
                    level=0,
                    sort_order=i,
                    taxonomy_version=version,
                )
                self.db.add(parent)
                await self.db.flush()

                for j, child_def in enumerate(parent_def.children):
                    self.db.add(
                        Category(
                            name=child_def.name,
                            description=child_def.description,
                            parent_id=parent.id,
                            level=1,
                            sort_order=j,
                            taxonomy_version=version,
                        )
                    )

            await self.db.commit()
            logger.info("✅ Category taxonomy v%s installed (%s parents)", version, len(tree))
            return version
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreWriteError(f"Could not replace category taxonomy: {e}") from e

    async def replace_product_areas(self, areas: Sequence[ProductAreaDefinition]) -> int:
        try:
            await self.db.execute(
                update(ProductArea).where(ProductArea.is_active.is_(True)).values(is_active=False)
            )
            await self.db.execute(delete(PostProductArea))
            self.db.add_all(
                ProductArea(name=a.name, description=a.description, sort_order=i)
                for i, a in enumerate(areas)
            )
            await self.db.commit()
            logger.info("✅ %s product areas installed", len(areas))
            return len(areas)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreWriteError(f"Could not replace product areas: {e}") from e


# =========================================================
# CATEGORY REQUESTS
# =========================================================
async def create_category_request(db: AsyncSession, name: str, description: Optional[str]) -> CategoryRequest:
    request = CategoryRequest(name=name, description=description)
    try:
        db.add(request)
        await db.commit()
        await db.refresh(request)
        return request
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreWriteError(f"Could not store category request: {e}") from e
