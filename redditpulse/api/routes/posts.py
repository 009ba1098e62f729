import math
from typing import Literal, Optional

from fastapi import APIRouter, Query, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from asyncio import TimeoutError, timeout as async_timeout

from redditpulse.api.deps import AsyncDbDep
from redditpulse.api.schemas import Pagination, PostListOut, PostOut
from redditpulse.core.logger import logger
from redditpulse.db.store import ClassificationStore, PostStore

router = APIRouter()

POSTS_TIMEOUT = 5


# ---------------------------------------------------------
# GET /posts
# ---------------------------------------------------------
@router.get("/posts", response_model=PostListOut)
async def read_posts(
    db: AsyncDbDep,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = Query(None, description="Parent or child category name"),
    search: Optional[str] = Query(None, max_length=200),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
):
    posts_store = PostStore(db)
    taxonomy = ClassificationStore(db)

    try:
        async with async_timeout(POSTS_TIMEOUT):
            category_ids = await taxonomy.resolve_category_filter(category) if category else None

            if category_ids == []:
                # parent without children matches nothing
                posts, total = [], 0
            else:
                posts, total = await posts_store.list_posts(
                    page=page,
                    limit=limit,
                    category_ids=category_ids,
                    search=search or None,
                    sort_by=sort_by,
                    sort_order=sort_order,
                )

            ids = [p.id for p in posts]
            version = await taxonomy.current_taxonomy_version()
            categories = await taxonomy.category_assignments_for(ids, version)
            areas = await taxonomy.product_area_assignments_for(ids)
    except TimeoutError:
        logger.error("Select timeout on read_posts", exc_info=True)
        raise HTTPException(status_code=504, detail="Select timeout")
    except SQLAlchemyError:
        logger.error("DB error on read_posts", exc_info=True)
        raise HTTPException(status_code=500, detail="Database error")

    items = []
    for post in posts:
        items.append(
            PostOut.model_validate(
                {
                    **post.model_dump(),
                    "post_categories": categories.get(post.id, []),
                    "post_product_areas": areas.get(post.id, []),
                }
            )
        )

    return PostListOut(
        data=items,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0,
        ),
    )
