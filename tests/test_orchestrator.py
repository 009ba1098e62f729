# tests/test_orchestrator.py
import json

import pytest
from sqlalchemy import func, select

from redditpulse.classification.orchestrator import ClassificationOrchestrator, Status, Strategy
from redditpulse.classification.taxonomy import CategoryDefinition, DEFAULT_CATEGORY_TREE
from redditpulse.core.exceptions import RateLimitedError
from redditpulse.core.rate_limit import RequestPacer
from redditpulse.db.models import PostCategory, PostProductArea
from redditpulse.db.store import ClassificationStore

KEYWORDS = {"Knowledge": ("sharepoint", "rag"), "General": ()}


def _orchestrator(session, llm=None, pacer=None, keywords=KEYWORDS):
    return ClassificationOrchestrator(
        ClassificationStore(session),
        keyword_table=keywords,
        llm=llm,
        pacer=pacer or RequestPacer(0),
    )


async def _count(session, model):
    return await session.scalar(select(func.count(model.id)))


# ------------------------------------------------------------------
# Keyword path
# ------------------------------------------------------------------
async def test_keyword_match_is_stored(session, taxonomy, create_post):
    post = await create_post(title="SharePoint RAG setup help")

    outcome = await _orchestrator(session).classify_categories(post)

    assert outcome.status is Status.CLASSIFIED
    assert outcome.strategy is Strategy.KEYWORDS
    assert outcome.assignments == [(taxonomy.category_id("Knowledge"), 0.98)]


async def test_no_match_gets_the_catch_all(session, taxonomy, create_post):
    post = await create_post(title="random question", content="random question")

    outcome = await _orchestrator(session).classify_categories(post)

    assert outcome.strategy is Strategy.CATCH_ALL
    assert outcome.assignments == [(taxonomy.category_id("General"), 0.30)]


async def test_classifying_twice_is_a_no_op(session, taxonomy, create_post):
    post = await create_post(title="SharePoint RAG setup help")
    orchestrator = _orchestrator(session)

    await orchestrator.classify_categories(post)
    again = await orchestrator.classify_categories(post)

    assert again.status is Status.ALREADY_CLASSIFIED
    assert await _count(session, PostCategory) == 1


async def test_without_catch_all_category_post_is_skipped(session, create_post):
    store = ClassificationStore(session)
    await store.replace_category_taxonomy(
        (CategoryDefinition("Knowledge & Data", children=(CategoryDefinition("Knowledge"),)),)
    )
    post = await create_post(title="random question")

    outcome = await _orchestrator(session).classify_categories(post)

    assert outcome.status is Status.SKIPPED
    assert await _count(session, PostCategory) == 0


async def test_parents_are_never_assigned(session, taxonomy, create_post):
    post = await create_post(title="Knowledge & Data question")
    keywords = {"Knowledge & Data": ("knowledge",), "General": ()}

    outcome = await _orchestrator(session, keywords=keywords).classify_categories(post)

    assert outcome.strategy is Strategy.CATCH_ALL


# ------------------------------------------------------------------
# LLM path
# ------------------------------------------------------------------
async def test_llm_answer_is_used(session, taxonomy, create_post, fake_llm):
    llm, _ = fake_llm(json.dumps({"categories": [{"name": "Flows", "confidence": 0.9}]}))
    post = await create_post(title="SharePoint RAG setup help")

    outcome = await _orchestrator(session, llm=llm).classify_categories(post)

    assert outcome.strategy is Strategy.LLM
    assert outcome.assignments == [(taxonomy.category_id("Flows"), 0.9)]


async def test_llm_failure_falls_back_to_keywords(session, taxonomy, create_post, fake_llm):
    llm, _ = fake_llm(RuntimeError("upstream 500"))
    post = await create_post(title="SharePoint RAG setup help")

    outcome = await _orchestrator(session, llm=llm).classify_categories(post)

    assert outcome.strategy is Strategy.KEYWORDS
    assert outcome.assignments == [(taxonomy.category_id("Knowledge"), 0.98)]


async def test_rate_limit_aborts_without_writing(session, taxonomy, create_post, fake_llm):
    llm, _ = fake_llm(Exception("Rate limit reached for model"))
    post = await create_post(title="SharePoint RAG setup help")

    with pytest.raises(RateLimitedError):
        await _orchestrator(session, llm=llm).classify_categories(post)

    assert await _count(session, PostCategory) == 0


async def test_llm_calls_are_paced(session, taxonomy, create_post, fake_llm):
    slept = []

    async def fake_sleep(seconds):
        slept.append(seconds)

    llm, calls = fake_llm(json.dumps({"categories": [{"name": "Flows", "confidence": 0.9}]}))
    pacer = RequestPacer(2.0, sleep=fake_sleep, clock=lambda: 100.0)
    orchestrator = _orchestrator(session, llm=llm, pacer=pacer)

    for title in ("one", "two", "three"):
        await orchestrator.classify_categories(await create_post(title=title))

    assert len(calls.calls) == 3
    assert slept == [2.0, 2.0]


# ------------------------------------------------------------------
# Product areas
# ------------------------------------------------------------------
async def test_product_areas_keep_at_most_two(session, taxonomy, create_post, fake_llm):
    answer = {
        "product_areas": [
            {"name": "Authoring Canvas", "confidence": 0.6},
            {"name": "Connectors & Tools", "confidence": 0.9},
            {"name": "Licensing & Capacity", "confidence": 0.7},
        ]
    }
    llm, _ = fake_llm(json.dumps(answer))
    post = await create_post(title="Custom connector licensing")

    outcome = await _orchestrator(session, llm=llm).classify_product_areas(post)

    assert outcome.status is Status.CLASSIFIED
    assert outcome.assignments == [
        (taxonomy.product_area_id("Connectors & Tools"), 0.9),
        (taxonomy.product_area_id("Licensing & Capacity"), 0.7),
    ]
    assert await _count(session, PostProductArea) == 2


async def test_product_areas_need_an_llm(session, taxonomy, create_post):
    post = await create_post(title="anything")

    outcome = await _orchestrator(session).classify_product_areas(post)

    assert outcome.status is Status.SKIPPED
    assert await _count(session, PostProductArea) == 0


# ------------------------------------------------------------------
# Re-taxonomy
# ------------------------------------------------------------------
async def test_new_taxonomy_version_makes_posts_unclassified(session, taxonomy, create_post):
    post = await create_post(title="SharePoint RAG setup help")
    await _orchestrator(session).classify_categories(post)
    store = ClassificationStore(session)

    version = await store.replace_category_taxonomy(DEFAULT_CATEGORY_TREE)

    assert version == taxonomy.version + 1
    assert await store.current_taxonomy_version() == version
    assert not await store.has_category_assignments(post.id, version)
    assert [p.id for p in await store.posts_without_categories(version, 10)] == [post.id]

    fresh = _orchestrator(session)
    outcome = await fresh.classify_categories(post)
    assert outcome.status is Status.CLASSIFIED
