"""Tag stored posts that have no product area yet (LLM only)."""
import argparse
import asyncio

from redditpulse.core.logger import logger
from redditpulse.enrichment.backfill import BATCH_LIMIT, classify_unclassified_product_areas


async def main(limit: int) -> None:
    result = await classify_unclassified_product_areas(limit=limit)
    logger.info(
        "📊 Product areas: %s checked, %s tagged, %s skipped, %s errors",
        result["checked"], result["classified"], result["skipped"], result["errors"],
    )
    if result["rate_limited"]:
        logger.warning("⚠️ Stopped on rate limit. Run again later to continue.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--limit", type=int, default=BATCH_LIMIT)
    args = parser.parse_args()
    asyncio.run(main(args.limit))
