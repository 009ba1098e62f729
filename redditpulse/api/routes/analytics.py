from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from redditpulse.analytics.aggregation import trend_window_start, weekly_trends
from redditpulse.api.deps import AsyncDbDep
from redditpulse.api.schemas import SummaryOut, TrendsOut
from redditpulse.core.logger import logger
from redditpulse.db.store import ClassificationStore, PostStore

router = APIRouter()

RECENT_DAYS = 7


@router.get("/summary", response_model=SummaryOut)
async def summary(db: AsyncDbDep):
    posts = PostStore(db)
    store = ClassificationStore(db)
    try:
        total = await posts.count()
        recent = await posts.count(since=datetime.now(timezone.utc) - timedelta(days=RECENT_DAYS))
        avg_score = await posts.average_score()
        categories = await store.active_category_count()
    except SQLAlchemyError:
        logger.error("DB error on analytics summary", exc_info=True)
        raise HTTPException(status_code=500, detail="Database error")

    return SummaryOut(
        total_posts=total,
        total_categories=categories,
        recent_posts=recent,
        avg_score=round(avg_score, 1),
    )


@router.get("/trends", response_model=TrendsOut)
async def category_trends(db: AsyncDbDep):
    """Weekly share of posts per leaf category over the last year."""
    since = trend_window_start()
    posts = PostStore(db)
    store = ClassificationStore(db)
    try:
        snapshot = await store.snapshot()
        created = await posts.created_since(since)
        assignments = await store.category_names_for_posts_since(since, snapshot.version)
    except SQLAlchemyError:
        logger.error("DB error on category trends", exc_info=True)
        raise HTTPException(status_code=500, detail="Database error")

    return weekly_trends(created, assignments, snapshot.category_names)


@router.get("/product-area-trends", response_model=TrendsOut)
async def product_area_trends(db: AsyncDbDep):
    since = trend_window_start()
    posts = PostStore(db)
    store = ClassificationStore(db)
    try:
        snapshot = await store.snapshot()
        created = await posts.created_since(since)
        assignments = await store.product_area_names_for_posts_since(since)
    except SQLAlchemyError:
        logger.error("DB error on product-area trends", exc_info=True)
        raise HTTPException(status_code=500, detail="Database error")

    return weekly_trends(created, assignments, snapshot.product_area_names)
