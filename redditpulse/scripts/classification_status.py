import asyncio

from redditpulse.db.database import async_session_maker
from redditpulse.db.store import ClassificationStore, PostStore


async def status() -> dict:
    async with async_session_maker() as session:
        store = ClassificationStore(session)
        version = await store.current_taxonomy_version()
        total = await PostStore(session).count()
        without_categories = await store.count_without_categories(version)
        without_areas = await store.count_without_product_areas()

    return {
        "taxonomy_version": version,
        "total_posts": total,
        "classified": total - without_categories,
        "unclassified": without_categories,
        "without_product_areas": without_areas,
    }


if __name__ == "__main__":
    result = asyncio.run(status())
    print("📊 Classification status")
    for key, value in result.items():
        print(f" - {key}: {value}")
