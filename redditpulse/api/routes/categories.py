from typing import List

from fastapi import APIRouter, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from redditpulse.analytics.aggregation import rollup_category_tree
from redditpulse.api.deps import AsyncDbDep
from redditpulse.api.schemas import CategoryTreeOut, ProductAreaOut
from redditpulse.core.logger import logger
from redditpulse.db.store import ClassificationStore

router = APIRouter()


# ---------------------------------------------------------
# GET /categories (tree + flat, rolled-up counts)
# ---------------------------------------------------------
@router.get("/categories", response_model=CategoryTreeOut)
async def read_categories(db: AsyncDbDep):
    store = ClassificationStore(db)
    try:
        categories = await store.active_categories()
        version = await store.current_taxonomy_version()
        counts = await store.category_post_counts(version)
    except SQLAlchemyError:
        logger.error("DB error on read_categories", exc_info=True)
        raise HTTPException(status_code=500, detail="Database error")

    tree, flat = rollup_category_tree(categories, counts)
    return {"data": tree, "flat": flat}


# ---------------------------------------------------------
# GET /product-areas
# ---------------------------------------------------------
@router.get("/product-areas", response_model=List[ProductAreaOut])
async def read_product_areas(db: AsyncDbDep):
    store = ClassificationStore(db)
    try:
        areas = await store.active_product_areas()
        counts = await store.product_area_post_counts()
    except SQLAlchemyError:
        logger.error("DB error on read_product_areas", exc_info=True)
        raise HTTPException(status_code=500, detail="Database error")

    return [
        ProductAreaOut(
            id=a.id,
            name=a.name,
            description=a.description,
            sort_order=a.sort_order,
            post_count=counts.get(a.id, 0),
        )
        for a in areas
    ]
