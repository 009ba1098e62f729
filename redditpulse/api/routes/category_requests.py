from fastapi import APIRouter, HTTPException, status

from redditpulse.api.deps import AsyncDbDep
from redditpulse.api.schemas import CategoryRequestIn, CategoryRequestOut
from redditpulse.core.exceptions import StoreWriteError
from redditpulse.core.logger import logger
from redditpulse.db.store import create_category_request

router = APIRouter()


@router.post("/category-requests", response_model=CategoryRequestOut, status_code=status.HTTP_201_CREATED)
async def submit_category_request(request_in: CategoryRequestIn, db: AsyncDbDep):
    try:
        request = await create_category_request(db, request_in.name, request_in.description)
    except StoreWriteError:
        logger.error("DB error creating category request", exc_info=True)
        raise HTTPException(status_code=500, detail="Database error")

    logger.info("📝 New category request: %s", request.name)
    return CategoryRequestOut.model_validate(request)
