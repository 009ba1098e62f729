"""Write a one-line AI summary for posts that lack one."""
import argparse
import asyncio

from redditpulse.core.logger import logger
from redditpulse.enrichment.backfill import BATCH_LIMIT, generate_missing_summaries


async def main(limit: int) -> None:
    result = await generate_missing_summaries(limit=limit)
    logger.info("📝 Summaries: %s/%s written, %s errors", result["summarized"], result["checked"], result["errors"])
    if result["rate_limited"]:
        logger.warning("⚠️ Stopped on rate limit. Run again later to continue.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--limit", type=int, default=BATCH_LIMIT)
    args = parser.parse_args()
    asyncio.run(main(args.limit))
