# tests/conftest.py
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlmodel import SQLModel

from redditpulse.classification.llm import LLMClassifier
from redditpulse.classification.taxonomy import DEFAULT_CATEGORY_TREE, DEFAULT_PRODUCT_AREAS
from redditpulse.core.settings import settings
from redditpulse.db import models  # noqa: F401  registers tables
from redditpulse.db.database import make_async_engine, make_session_maker
from redditpulse.db.models import Post
from redditpulse.db.store import ClassificationStore, PostStore

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


# ------------------------------------------------------------------
# Settings: never reach a real provider, never sleep
# ------------------------------------------------------------------
@pytest.fixture(autouse=True)
def offline_settings(monkeypatch):
    monkeypatch.setattr(settings, "llm_api_key", None)
    monkeypatch.setattr(settings, "llm_request_delay_seconds", 0.0)


# ------------------------------------------------------------------
# FIXTURE: fresh SQLite database per test
# ------------------------------------------------------------------
@pytest.fixture
async def engine(tmp_path):
    eng = make_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return make_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as db:
        yield db


@pytest.fixture
async def taxonomy(session):
    """Bundled category tree + product areas, installed as version 1."""
    store = ClassificationStore(session)
    await store.replace_category_taxonomy(DEFAULT_CATEGORY_TREE)
    await store.replace_product_areas(DEFAULT_PRODUCT_AREAS)
    return await store.snapshot()


# ------------------------------------------------------------------
# FIXTURE: factory for stored posts
# ------------------------------------------------------------------
@pytest.fixture
def create_post(session):
    counter = {"n": 0}

    async def _create_post(title="Post", content="", score=0, num_comments=0, created_at=None, reddit_id=None):
        counter["n"] += 1
        post = Post(
            reddit_id=reddit_id or f"abc{counter['n']}",
            title=title,
            content=content,
            score=score,
            num_comments=num_comments,
            created_at=created_at or NOW - timedelta(hours=counter["n"]),
        )
        return await PostStore(session).insert_if_absent(post)

    return _create_post


# ------------------------------------------------------------------
# Fake OpenAI-style client
# ------------------------------------------------------------------
class FakeCompletions:
    """Replays scripted replies; the last one repeats. Exceptions are raised."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


class FakeLLMClient:
    def __init__(self, *replies):
        self.completions = FakeCompletions(replies)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture
def fake_llm():
    def _fake_llm(*replies):
        client = FakeLLMClient(*replies)
        return LLMClassifier(client, model="test-model"), client.completions

    return _fake_llm


@pytest.fixture
def duplicate_first_category_write(monkeypatch):
    """The first category write carries every row twice and fails on the unique constraint."""
    original = ClassificationStore.insert_category_assignments
    calls = []

    async def insert(self, post_id, assignments, taxonomy_version):
        calls.append(post_id)
        if len(calls) == 1:
            assignments = list(assignments) * 2
        return await original(self, post_id, assignments, taxonomy_version)

    monkeypatch.setattr(ClassificationStore, "insert_category_assignments", insert)
    return calls
