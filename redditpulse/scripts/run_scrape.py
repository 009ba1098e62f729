import asyncio
import sys

from redditpulse.core.logger import logger
from redditpulse.enrichment.ingest import run_scrape

# ============================================================
# Windows fix
# ============================================================
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


async def main() -> None:
    result = await run_scrape()
    logger.info("🏁 Scrape result: %s", result)
    if result["rate_limited"]:
        logger.warning("⚠️ Run stopped on rate limit; unclassified posts wait for `reclassify`.")


if __name__ == "__main__":
    asyncio.run(main())
