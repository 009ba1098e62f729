# tests/test_api.py
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from redditpulse.api.deps import get_db_async
from redditpulse.api.routes import scraper
from redditpulse.db.store import ClassificationStore
from redditpulse.main import app


@pytest.fixture
async def client(session_maker):
    async def override_get_db_async():
        async with session_maker() as db:
            yield db

    app.dependency_overrides[get_db_async] = override_get_db_async
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def classified(session, taxonomy, create_post):
    """Three recent posts: one in Flows, one in Knowledge, one unclassified."""
    recent = datetime.now(timezone.utc) - timedelta(days=1)
    flows = await create_post(title="Flow keeps failing", score=10, created_at=recent)
    knowledge = await create_post(title="SharePoint knowledge source", score=2, created_at=recent - timedelta(hours=1))
    other = await create_post(title="Hello", score=5, created_at=recent - timedelta(hours=2))

    store = ClassificationStore(session)
    await store.insert_category_assignments(flows.id, [(taxonomy.category_id("Flows"), 0.9)], taxonomy.version)
    await store.insert_category_assignments(
        knowledge.id, [(taxonomy.category_id("Knowledge"), 0.8)], taxonomy.version
    )
    await store.insert_product_area_assignments(
        flows.id, [(taxonomy.product_area_id("Power Automate & Flows"), 0.85)]
    )
    return {"flows": flows, "knowledge": knowledge, "other": other}


# ------------------------------------------------------------------
# Posts
# ------------------------------------------------------------------
async def test_posts_are_paginated(client, classified):
    response = await client.get("/api/posts", params={"limit": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}
    assert [p["title"] for p in body["data"]] == ["Flow keeps failing", "SharePoint knowledge source"]


async def test_posts_carry_their_assignments(client, classified):
    body = (await client.get("/api/posts", params={"limit": 1})).json()
    post = body["data"][0]

    [assignment] = post["post_categories"]
    assert assignment["confidence"] == 0.9
    assert assignment["categories"]["name"] == "Flows"
    assert assignment["categories"]["level"] == 1
    assert assignment["categories"]["parent_name"] == "Automation & Integrations"
    assert post["post_product_areas"][0]["product_areas"]["name"] == "Power Automate & Flows"


@pytest.mark.parametrize(
    "category,expected",
    [
        ("Automation & Integrations", ["Flow keeps failing"]),
        ("Flows", ["Flow keeps failing"]),
        ("Knowledge & Data", ["SharePoint knowledge source"]),
        ("Not A Category", ["Flow keeps failing", "SharePoint knowledge source", "Hello"]),
    ],
)
async def test_category_filter(client, classified, category, expected):
    body = (await client.get("/api/posts", params={"category": category})).json()
    assert [p["title"] for p in body["data"]] == expected


async def test_search_and_sort(client, classified):
    body = (await client.get("/api/posts", params={"search": "SHAREPOINT"})).json()
    assert [p["title"] for p in body["data"]] == ["SharePoint knowledge source"]

    body = (await client.get("/api/posts", params={"sortBy": "score", "sortOrder": "asc"})).json()
    assert [p["score"] for p in body["data"]] == [2, 5, 10]


# ------------------------------------------------------------------
# Taxonomy + analytics
# ------------------------------------------------------------------
async def test_categories_are_rolled_up(client, classified):
    body = (await client.get("/api/categories")).json()

    parent = next(c for c in body["data"] if c["name"] == "Automation & Integrations")
    assert parent["post_count"] == 1
    assert [c["name"] for c in parent["children"]] == ["Flows", "Integrations"]
    assert any(c["name"] == "Flows" and c["post_count"] == 1 for c in body["flat"])


async def test_product_areas_with_counts(client, classified):
    body = (await client.get("/api/product-areas")).json()

    counts = {a["name"]: a["post_count"] for a in body}
    assert counts["Power Automate & Flows"] == 1
    assert counts["Authoring Canvas"] == 0


async def test_summary(client, classified):
    body = (await client.get("/api/analytics/summary")).json()

    assert body["totalPosts"] == 3
    assert body["recentPosts"] == 3
    assert body["avgScore"] == 5.7
    assert body["totalCategories"] > 0


async def test_trends_shape(client, classified):
    body = (await client.get("/api/analytics/trends")).json()

    assert 1 <= len(body["labels"]) <= 2
    flows = next(d for d in body["datasets"] if d["label"] == "Flows")
    assert len(flows["data"]) == len(body["labels"])
    assert all(d["label"] != "Automation & Integrations" for d in body["datasets"])

    areas = (await client.get("/api/analytics/product-area-trends")).json()
    assert {d["label"] for d in areas["datasets"]} >= {"Power Automate & Flows"}


# ------------------------------------------------------------------
# Category requests
# ------------------------------------------------------------------
async def test_category_request_is_stored(client, session):
    response = await client.post(
        "/api/category-requests", json={"name": "  Copilot Tuning  ", "description": "fine-tuning posts"}
    )

    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Copilot Tuning"
    assert body["status"] == "pending"


@pytest.mark.parametrize("payload", [{}, {"name": "   "}, {"name": "x" * 101}])
async def test_invalid_category_request(client, payload):
    response = await client.post("/api/category-requests", json=payload)
    assert response.status_code == 422


# ------------------------------------------------------------------
# Scraper
# ------------------------------------------------------------------
async def test_trigger_acknowledges_and_records_run(client, session):
    async def fake_runner():
        return {"inserted": 4, "rate_limited": False}

    app.dependency_overrides[scraper.get_scrape_runner] = lambda: fake_runner
    try:
        response = await client.post("/api/scraper/trigger")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

        status = (await client.get("/api/scraper/status")).json()
        assert status["running"] is False
        assert status["last_run"] == {"inserted": 4, "rate_limited": False}
        assert status["total_posts"] == 0
    finally:
        scraper.scrape_state.update(running=False, last_run=None, last_error=None)


async def test_failed_background_run_is_reported(client, session):
    async def failing_runner():
        raise RuntimeError("feed down")

    app.dependency_overrides[scraper.get_scrape_runner] = lambda: failing_runner
    try:
        await client.post("/api/scraper/trigger")
        status = (await client.get("/api/scraper/status")).json()
        assert status["last_error"] == "feed down"
    finally:
        scraper.scrape_state.update(running=False, last_run=None, last_error=None)


# ------------------------------------------------------------------
# System
# ------------------------------------------------------------------
async def test_health_and_ready(client, session):
    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["db"] == "up"

    assert (await client.get("/ready")).json() == {"status": "ready"}


async def test_metrics_exposed(client):
    response = await client.get("/metrics/")
    assert response.status_code == 200
    assert "redditpulse_posts_ingested_total" in response.text
