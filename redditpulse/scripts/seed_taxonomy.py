"""
Install the bundled category tree and product areas.

Re-running bumps the taxonomy version: old categories are deactivated and
every category assignment is deleted, so run `reclassify` afterwards.
"""
import argparse
import asyncio

from redditpulse.classification.taxonomy import DEFAULT_CATEGORY_TREE, DEFAULT_PRODUCT_AREAS
from redditpulse.core.logger import logger
from redditpulse.db.database import async_session_maker
from redditpulse.db.store import ClassificationStore


async def seed(with_product_areas: bool = True) -> int:
    async with async_session_maker() as session:
        store = ClassificationStore(session)
        version = await store.replace_category_taxonomy(DEFAULT_CATEGORY_TREE)
        if with_product_areas:
            await store.replace_product_areas(DEFAULT_PRODUCT_AREAS)
    logger.info("🌱 Taxonomy v%s seeded. Run `python -m redditpulse.scripts.reclassify` next.", version)
    return version


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--skip-product-areas", action="store_true")
    args = parser.parse_args()
    asyncio.run(seed(with_product_areas=not args.skip_product_areas))
