# redditpulse/enrichment/backfill.py
"""
Admin backfills over already-stored posts.

These run independently of ingestion: they pick posts that are still
unclassified (or unsummarised), process them one at a time with the shared
request pacing, and stop as soon as the provider reports a rate limit.
"""
import asyncio
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from redditpulse.classification.llm import LLMClassifier
from redditpulse.classification.orchestrator import Status, build_orchestrator
from redditpulse.core.exceptions import RateLimitedError, StoreWriteError
from redditpulse.core.logger import logger
from redditpulse.core.rate_limit import RequestPacer
from redditpulse.core.settings import settings
from redditpulse.db.database import async_session_maker
from redditpulse.db.store import ClassificationStore, PostStore

BATCH_LIMIT = 100


async def _with_session(db: Optional[AsyncSession], fn, *args, **kwargs):
    if db is None:
        async with async_session_maker() as session:
            return await fn(session, *args, **kwargs)
    return await fn(db, *args, **kwargs)


# ------------------------------------------------------------------
# Categories
# ------------------------------------------------------------------
async def classify_unclassified_posts(
    db: Optional[AsyncSession] = None,
    limit: int = BATCH_LIMIT,
    llm: Optional[LLMClassifier] = None,
    pacer: Optional[RequestPacer] = None,
) -> Dict[str, int]:
    return await _with_session(db, _classify_categories, limit, llm, pacer)


async def _classify_categories(db, limit, llm, pacer) -> Dict[str, int]:
    store = ClassificationStore(db)
    posts_store = PostStore(db)
    orchestrator = build_orchestrator(store, settings, llm=llm, pacer=pacer)
    taxonomy = await orchestrator.refresh_taxonomy()

    posts = await store.posts_without_categories(taxonomy.version, limit)
    logger.info("Found %s posts without categories (taxonomy v%s)", len(posts), taxonomy.version)

    result = {"checked": len(posts), "classified": 0, "skipped": 0, "errors": 0, "rate_limited": False}
    for post_id in [p.id for p in posts]:
        # reloads rows expired by an earlier rollback
        post = await posts_store.get(post_id)
        title = post.title
        try:
            outcome = await orchestrator.classify_categories(post)
        except RateLimitedError:
            logger.warning("⚠️ Rate limit hit! Stopping for now.")
            result["rate_limited"] = True
            break
        except StoreWriteError as e:
            logger.error("Error storing categories for post %s: %s", post_id, e)
            result["errors"] += 1
            continue

        if outcome.status is Status.CLASSIFIED:
            result["classified"] += 1
            logger.info("✓ %r → %s (%s)", title[:50], outcome.assignments, outcome.strategy.value)
        else:
            result["skipped"] += 1

    return result


# ------------------------------------------------------------------
# Product areas
# ------------------------------------------------------------------
async def classify_unclassified_product_areas(
    db: Optional[AsyncSession] = None,
    limit: int = BATCH_LIMIT,
    llm: Optional[LLMClassifier] = None,
    pacer: Optional[RequestPacer] = None,
) -> Dict[str, int]:
    return await _with_session(db, _classify_product_areas, limit, llm, pacer)


async def _classify_product_areas(db, limit, llm, pacer) -> Dict[str, int]:
    store = ClassificationStore(db)
    posts_store = PostStore(db)
    orchestrator = build_orchestrator(store, settings, llm=llm, pacer=pacer)
    await orchestrator.refresh_taxonomy()

    result = {"checked": 0, "classified": 0, "skipped": 0, "errors": 0, "rate_limited": False}
    if orchestrator.llm is None:
        logger.warning("No LLM configured, product-area classification skipped")
        return result

    posts = await store.posts_without_product_areas(limit)
    result["checked"] = len(posts)
    logger.info("Found %s posts without product areas", len(posts))

    for post_id in [p.id for p in posts]:
        post = await posts_store.get(post_id)
        try:
            outcome = await orchestrator.classify_product_areas(post)
        except RateLimitedError:
            logger.warning("⚠️ Rate limit hit! Stopping for now.")
            result["rate_limited"] = True
            break
        except StoreWriteError as e:
            logger.error("Error storing product areas for post %s: %s", post_id, e)
            result["errors"] += 1
            continue

        if outcome.status is Status.CLASSIFIED:
            result["classified"] += 1
        else:
            result["skipped"] += 1

    return result


# ------------------------------------------------------------------
# Summaries
# ------------------------------------------------------------------
async def generate_missing_summaries(
    db: Optional[AsyncSession] = None,
    limit: int = BATCH_LIMIT,
    llm: Optional[LLMClassifier] = None,
    pacer: Optional[RequestPacer] = None,
) -> Dict[str, int]:
    return await _with_session(db, _generate_summaries, limit, llm, pacer)


async def _generate_summaries(db, limit, llm, pacer) -> Dict[str, int]:
    llm = llm or LLMClassifier.from_settings(settings)
    pacer = pacer or RequestPacer(settings.llm_request_delay_seconds)
    result = {"checked": 0, "summarized": 0, "errors": 0, "rate_limited": False}

    if llm is None:
        logger.warning("No LLM configured, summaries skipped")
        return result

    posts_store = PostStore(db)
    posts = await posts_store.without_summary(limit)
    result["checked"] = len(posts)
    logger.info("Found %s posts needing summaries", len(posts))

    for post_id in [p.id for p in posts]:
        post = await posts_store.get(post_id)
        await pacer.wait()
        try:
            summary = await llm.summarize(post.title, post.content)
        except RateLimitedError:
            logger.warning("⚠️ Rate limit hit! Stopping for now.")
            result["rate_limited"] = True
            break

        if not summary:
            result["errors"] += 1
            continue

        try:
            await posts_store.set_summary(post_id, summary)
            result["summarized"] += 1
        except StoreWriteError as e:
            logger.error("Error updating post %s: %s", post_id, e)
            result["errors"] += 1

    return result


if __name__ == "__main__":
    print("\nFinal result:", asyncio.run(classify_unclassified_posts()))
