from datetime import datetime, timezone
from typing import Annotated, Any, Awaitable, Callable, Dict, TypeAlias

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from redditpulse.api.deps import AsyncDbDep
from redditpulse.api.schemas import ScrapeStatusOut, ScrapeTriggerOut
from redditpulse.core.logger import logger
from redditpulse.db.store import PostStore
from redditpulse.enrichment.ingest import run_scrape

router = APIRouter()

# Process-local; runs are not coordinated across workers
scrape_state: Dict[str, Any] = {
    "running": False,
    "last_run": None,
    "last_error": None,
}

ScrapeRunner: TypeAlias = Callable[[], Awaitable[Dict[str, Any]]]


def get_scrape_runner() -> ScrapeRunner:
    return run_scrape


ScrapeRunnerDep: TypeAlias = Annotated[ScrapeRunner, Depends(get_scrape_runner)]


async def _run_in_background(runner: ScrapeRunner) -> None:
    scrape_state["running"] = True
    scrape_state["last_error"] = None
    try:
        scrape_state["last_run"] = await runner()
        logger.info("Background scrape completed: %s", scrape_state["last_run"])
    except Exception as e:
        logger.error("Background scrape failed", exc_info=True)
        scrape_state["last_error"] = str(e)
    finally:
        scrape_state["running"] = False


# ---------------------------------------------------------
# POST /scraper/trigger
# ---------------------------------------------------------
@router.post("/trigger", response_model=ScrapeTriggerOut)
async def trigger_scrape(background_tasks: BackgroundTasks, runner: ScrapeRunnerDep):
    background_tasks.add_task(_run_in_background, runner)
    return ScrapeTriggerOut(
        message="Scraping started in background",
        status="running",
        timestamp=datetime.now(timezone.utc),
    )


# ---------------------------------------------------------
# GET /scraper/status
# ---------------------------------------------------------
@router.get("/status", response_model=ScrapeStatusOut)
async def scrape_status(db: AsyncDbDep):
    posts = PostStore(db)
    try:
        last_scrape = await posts.latest_scraped_at()
        total = await posts.count()
    except SQLAlchemyError:
        logger.error("DB error on scrape_status", exc_info=True)
        raise HTTPException(status_code=500, detail="Database error")

    return ScrapeStatusOut(
        running=scrape_state["running"],
        last_scrape=last_scrape,
        total_posts=total,
        last_run=scrape_state["last_run"],
        last_error=scrape_state["last_error"],
    )
