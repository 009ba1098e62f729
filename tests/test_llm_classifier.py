# tests/test_llm_classifier.py
import json

import httpx
import pytest
from pydantic import SecretStr

from redditpulse.classification.llm import (
    LLMClassifier,
    LLMFailed,
    LLMRateLimited,
    LLMSuccess,
    ScoredName,
    build_category_prompt,
    build_llm_client,
    is_rate_limit_error,
    parse_category_response,
    parse_product_area_response,
)
from redditpulse.core.exceptions import RateLimitedError
from redditpulse.core.settings import settings

CATEGORIES = ["Knowledge", "Flows", "General"]
AREAS = ["Authoring Canvas", "Connectors & Tools", "Licensing & Capacity"]


def _categories(*pairs):
    return json.dumps({"categories": [{"name": n, "confidence": c} for n, c in pairs]})


# ------------------------------------------------------------------
# Category parsing
# ------------------------------------------------------------------
def test_overconfident_score_is_capped():
    result = parse_category_response(_categories(("Knowledge", 1.2)), CATEGORIES, "General")
    assert result == (ScoredName("Knowledge", 0.98),)


def test_unknown_and_weak_entries_are_dropped():
    text = _categories(("Knowledge", 0.8), ("Made Up", 0.9), ("Flows", 0.1), ("Knowledge", 0.5))
    assert parse_category_response(text, CATEGORIES, "General") == (ScoredName("Knowledge", 0.8),)


@pytest.mark.parametrize(
    "text",
    ["I think this is about Knowledge.", _categories(("Made Up", 0.9)), '{"categories": "Knowledge"}'],
)
def test_unusable_category_answer_defaults_to_catch_all(text):
    assert parse_category_response(text, CATEGORIES, "General") == (ScoredName("General", 0.30),)


@pytest.mark.parametrize(
    "text",
    [
        '{"categories": [{"name": "Knowledge", "confidence": NaN}]}',
        '{"categories": [{"name": "Knowledge", "confidence": Infinity}]}',
        '{"categories": [{"name": "Knowledge", "confidence": -Infinity}]}',
        '{"categories": [{"name": "Knowledge", "confidence": "high"}]}',
        '{"categories": [{"name": ["Knowledge"], "confidence": 0.9}]}',
        '{"categories": [{"name": 42, "confidence": 0.9}]}',
    ],
)
def test_malformed_entries_are_dropped(text):
    result = parse_category_response(text, CATEGORIES, "General")

    assert result == (ScoredName("General", 0.30),)
    assert all(0.25 <= s.confidence <= 0.98 for s in result)


def test_malformed_entry_does_not_drop_its_valid_neighbour():
    text = '{"categories": [{"name": "Flows", "confidence": NaN}, {"name": "Knowledge", "confidence": 0.7}]}'
    assert parse_category_response(text, CATEGORIES, "General") == (ScoredName("Knowledge", 0.7),)


# ------------------------------------------------------------------
# Product-area parsing
# ------------------------------------------------------------------
def test_product_areas_keep_top_two():
    text = json.dumps(
        {
            "product_areas": [
                {"name": "Authoring Canvas", "confidence": 0.5},
                {"name": "Connectors & Tools", "confidence": 0.9},
                {"name": "Licensing & Capacity", "confidence": 0.7},
            ]
        }
    )
    assert parse_product_area_response(text, AREAS) == (
        ScoredName("Connectors & Tools", 0.9),
        ScoredName("Licensing & Capacity", 0.7),
    )


def test_product_areas_have_a_higher_floor_and_no_default():
    text = json.dumps({"product_areas": [{"name": "Authoring Canvas", "confidence": 0.28}]})
    assert parse_product_area_response(text, AREAS) == ()
    assert parse_product_area_response("nothing useful", AREAS) == ()


def test_non_finite_product_area_score_is_dropped():
    text = '{"product_areas": [{"name": "Authoring Canvas", "confidence": NaN}]}'
    assert parse_product_area_response(text, AREAS) == ()


# ------------------------------------------------------------------
# Rate-limit detection
# ------------------------------------------------------------------
class _StatusError(Exception):
    def __init__(self, status_code):
        super().__init__("provider error")
        self.status_code = status_code


@pytest.mark.parametrize(
    "exc,expected",
    [
        (Exception("Rate limit reached for model llama in organization"), True),
        (Exception("You exceeded your current quota"), True),
        (Exception("429 Too Many Requests"), True),
        (_StatusError(429), True),
        (_StatusError(500), False),
        (Exception("connection reset by peer"), False),
    ],
)
def test_rate_limit_detection(exc, expected):
    assert is_rate_limit_error(exc) is expected


# ------------------------------------------------------------------
# Prompt
# ------------------------------------------------------------------
def test_category_prompt_lists_names_and_truncates_body():
    prompt = build_category_prompt("Title", "x" * 800, CATEGORIES, "General")
    assert "1. Knowledge" in prompt and "3. General" in prompt
    assert "x" * 500 in prompt
    assert "x" * 501 not in prompt


# ------------------------------------------------------------------
# Classifier calls
# ------------------------------------------------------------------
async def test_successful_call_returns_success(fake_llm):
    llm, calls = fake_llm(_categories(("Flows", 0.9)))

    result = await llm.classify_categories("Flow fails", "body", CATEGORIES)

    assert result == LLMSuccess((ScoredName("Flows", 0.9),))
    assert calls.calls[0]["model"] == "test-model"
    assert calls.calls[0]["temperature"] == 0.3


async def test_rate_limited_call_is_tagged(fake_llm):
    llm, _ = fake_llm(Exception("Rate limit reached for model"))

    result = await llm.classify_categories("t", "b", CATEGORIES)

    assert isinstance(result, LLMRateLimited)


async def test_provider_429_is_not_retried(monkeypatch):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(429, json={"error": {"message": "Rate limit reached", "type": "rate_limit"}})

    monkeypatch.setattr(settings, "llm_api_key", SecretStr("test-key"))
    client = build_llm_client(settings, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    llm = LLMClassifier.from_settings(settings, client=client)

    result = await llm.classify_categories("t", "b", CATEGORIES)

    assert isinstance(result, LLMRateLimited)
    assert len(requests) == 1


async def test_other_failures_carry_the_catch_all_fallback(fake_llm):
    llm, _ = fake_llm(RuntimeError("connection reset"))

    result = await llm.classify_categories("t", "b", CATEGORIES)

    assert isinstance(result, LLMFailed)
    assert result.fallback == (ScoredName("General", 0.30),)


async def test_summary_is_trimmed_to_200_chars(fake_llm):
    llm, _ = fake_llm("  " + "s" * 300 + "  ")
    summary = await llm.summarize("t", "b")
    assert summary == "s" * 200


async def test_summary_rate_limit_raises_other_errors_return_none(fake_llm):
    limited, _ = fake_llm(Exception("rate_limit_exceeded"))
    with pytest.raises(RateLimitedError):
        await limited.summarize("t", "b")

    broken, _ = fake_llm(RuntimeError("boom"))
    assert await broken.summarize("t", "b") is None
