# redditpulse/enrichment/ingest.py
import asyncio
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from redditpulse.classification.llm import LLMClassifier
from redditpulse.classification.orchestrator import ClassificationOrchestrator, Status, build_orchestrator
from redditpulse.core import metrics
from redditpulse.core.exceptions import RateLimitedError, StoreWriteError
from redditpulse.core.logger import logger
from redditpulse.core.rate_limit import RequestPacer
from redditpulse.core.settings import settings
from redditpulse.db.database import async_session_maker
from redditpulse.db.models import Post
from redditpulse.db.store import ClassificationStore, PostStore
from redditpulse.feed.reddit import FeedPost, RedditFeed


@dataclass
class ScrapeStats:
    pages: int = 0
    fetched: int = 0
    inserted: int = 0
    skipped: int = 0
    classified: int = 0
    product_areas: int = 0
    failed: int = 0
    rate_limited: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def to_post(item: FeedPost) -> Post:
    return Post(
        reddit_id=item.reddit_id,
        title=item.title,
        content=item.selftext,
        author=item.author,
        score=item.score,
        num_comments=item.num_comments,
        url=item.url,
        permalink=item.permalink,
        thumbnail=item.thumbnail,
        link_flair_text=item.link_flair_text,
        created_at=item.created_at,
        scraped_at=datetime.now(timezone.utc),
    )


# ------------------------------------------------------------------
# Main entry point
# ------------------------------------------------------------------
async def run_scrape(
    db: Optional[AsyncSession] = None,
    feed: Optional[RedditFeed] = None,
    llm: Optional[LLMClassifier] = None,
    pacer: Optional[RequestPacer] = None,
    *,
    target: Optional[int] = None,
    hours: Optional[int] = None,
    max_pages: Optional[int] = None,
    classify_product_areas: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Scrape recent posts, store new ones and classify each one inline.
    If no session (db) is passed, one is created internally.
    FeedFetchError propagates and aborts the run.
    """
    feed = feed or RedditFeed(settings.subreddit, settings.feed_user_agent)

    if db is None:
        async with async_session_maker() as session:
            return await _run_scrape(
                session, feed, llm, pacer, target, hours, max_pages, classify_product_areas, now
            )
    return await _run_scrape(db, feed, llm, pacer, target, hours, max_pages, classify_product_areas, now)


async def _run_scrape(
    db: AsyncSession,
    feed: RedditFeed,
    llm: Optional[LLMClassifier],
    pacer: Optional[RequestPacer],
    target: Optional[int],
    hours: Optional[int],
    max_pages: Optional[int],
    classify_product_areas: Optional[bool],
    now: Optional[datetime],
) -> Dict[str, Any]:
    target = target if target is not None else settings.scrape_target
    hours = hours if hours is not None else settings.scrape_hours
    max_pages = max_pages if max_pages is not None else settings.scrape_max_pages
    if classify_product_areas is None:
        classify_product_areas = settings.classify_product_areas

    cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=hours)
    posts = PostStore(db)
    orchestrator = build_orchestrator(ClassificationStore(db), settings, llm=llm, pacer=pacer)
    await orchestrator.refresh_taxonomy()

    stats = ScrapeStats()
    after: Optional[str] = None

    logger.info("🔄 Scraping r/%s (target=%s, last %sh)", feed.subreddit, target, hours)

    async with feed:
        while stats.fetched < target and stats.pages < max_pages:
            page = await feed.fetch_page(after=after)
            stats.pages += 1

            recent = [p for p in page.posts if p.created_at >= cutoff]
            if not recent:
                logger.info("Page %s has no posts newer than %s, stopping", stats.pages, cutoff.isoformat())
                break

            for item in recent:
                if stats.fetched >= target:
                    break
                stats.fetched += 1

                halted = await _ingest_one(item, posts, orchestrator, classify_product_areas, stats)
                if halted:
                    logger.warning("⚠️ Rate limit hit, stopping scrape. Remaining posts wait for the next run.")
                    return stats.as_dict()

            if not page.after:
                break
            after = page.after

    logger.info(
        "✅ Scrape finished: %s new, %s skipped, %s failed (%s pages)",
        stats.inserted, stats.skipped, stats.failed, stats.pages,
        extra={"scrape": stats.as_dict()},
    )
    return stats.as_dict()


async def _ingest_one(
    item: FeedPost,
    posts: PostStore,
    orchestrator: ClassificationOrchestrator,
    classify_product_areas: bool,
    stats: ScrapeStats,
) -> bool:
    """Insert and classify one feed post. Returns True when the run must halt."""
    try:
        post = await posts.insert_if_absent(to_post(item))
    except StoreWriteError as e:
        logger.error("Error inserting post %s: %s", item.reddit_id, e)
        stats.failed += 1
        return False

    if post is None:
        stats.skipped += 1
        metrics.posts_skipped.inc()
        return False

    stats.inserted += 1
    metrics.posts_ingested.inc()
    # a failed write rolls back and expires `post`
    post_id = post.id

    try:
        outcome = await orchestrator.classify_categories(post)
        if outcome.status is Status.CLASSIFIED:
            stats.classified += 1

        if classify_product_areas:
            areas = await orchestrator.classify_product_areas(post)
            if areas.status is Status.CLASSIFIED:
                stats.product_areas += 1
    except RateLimitedError:
        stats.rate_limited = True
        return True
    except Exception as e:
        logger.error("Error classifying post %s: %s", post_id, e, exc_info=True)
        stats.failed += 1

    return False


if __name__ == "__main__":
    result = asyncio.run(run_scrape())
    print("\nFinal result:", result)
