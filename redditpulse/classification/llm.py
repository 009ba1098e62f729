"""LLM-backed classification over an OpenAI-compatible chat completion API.

Every public call returns a tagged result instead of raising, so the
orchestrator decides between accepting, falling back and aborting:

- ``LLMSuccess``: validated assignments (possibly the safe default)
- ``LLMRateLimited``: quota or rate exhaustion, the batch must stop
- ``LLMFailed``: any other provider error, with a safe fallback attached
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence, Union

import httpx
import openai
from openai import AsyncOpenAI

from redditpulse.classification.json_extract import extract_json_object
from redditpulse.core import metrics
from redditpulse.core.exceptions import ClassificationParseError, RateLimitedError
from redditpulse.core.settings import Settings

logger = logging.getLogger("redditpulse.llm")

CONFIDENCE_CAP = 0.98
CATEGORY_MIN_CONFIDENCE = 0.25
PRODUCT_AREA_MIN_CONFIDENCE = 0.30
MAX_PRODUCT_AREAS = 2
DEFAULT_CONFIDENCE = 0.30

PROMPT_BODY_CHARS = 500
COMBINED_TEXT_CHARS = 1000
SUMMARY_MAX_CHARS = 200

_RATE_LIMIT_MARKERS = ("rate limit", "rate_limit", "ratelimit", "quota", "too many requests")


@dataclass(frozen=True)
class ScoredName:
    name: str
    confidence: float


@dataclass(frozen=True)
class LLMSuccess:
    assignments: tuple[ScoredName, ...]


@dataclass(frozen=True)
class LLMRateLimited:
    reason: str


@dataclass(frozen=True)
class LLMFailed:
    reason: str
    fallback: tuple[ScoredName, ...] = ()


LLMResult = Union[LLMSuccess, LLMRateLimited, LLMFailed]


def is_rate_limit_error(exc: BaseException) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    if getattr(exc, "status_code", None) == 429:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


def build_llm_client(cfg: Settings, http_client: Optional[httpx.AsyncClient] = None) -> Optional[AsyncOpenAI]:
    """
    Return a configured client, or None when no API key is set.
    SDK retries are off: a 429 must reach the caller on the first response.
    """
    if not cfg.llm_enabled:
        return None
    return AsyncOpenAI(
        api_key=cfg.llm_api_key.get_secret_value(),
        base_url=cfg.llm_base_url,
        max_retries=0,
        http_client=http_client,
    )


# ---------------------------------------------------------
# Prompts
# ---------------------------------------------------------
def build_category_prompt(title: str, body: str, names: Sequence[str], catch_all: str) -> str:
    numbered = "\n".join(f"{i}. {name}" for i, name in enumerate(names, start=1))
    return f"""You are a category classifier for Reddit posts. Analyze the post and assign it to 1-3 of the available categories.

Available categories:
{numbered}

Post:
Title: {title}
Content: {(body or "")[:PROMPT_BODY_CHARS]}

Instructions:
- Assign 1-3 most relevant categories, using the names exactly as listed
- Give each a confidence score between 0.0 and 1.0
- Only include categories with confidence >= {CATEGORY_MIN_CONFIDENCE}
- If no specific category fits, use "{catch_all}"
- Respond ONLY with JSON, no markdown:

{{"categories": [{{"name": "Category Name", "confidence": 0.85}}]}}"""


def build_product_area_prompt(title: str, body: str, names: Sequence[str]) -> str:
    text = f"{title}\n{body or ''}"[:COMBINED_TEXT_CHARS]
    listed = "\n".join(f"- {name}" for name in names)
    return f"""You map Reddit posts to the product areas they are about.

Product areas:
{listed}

Post:
{text}

Instructions:
- Pick at most 2 product areas, using the names exactly as listed
- Give each a confidence score between 0.0 and 1.0
- Only include product areas with confidence >= {PRODUCT_AREA_MIN_CONFIDENCE}
- If none apply, return an empty list
- Respond ONLY with JSON, no markdown:

{{"product_areas": [{{"name": "Product Area", "confidence": 0.8}}]}}"""


def build_summary_prompt(title: str, body: str) -> str:
    return f"""Summarize this Reddit post in ONE sentence (max 100 characters). Be concise and descriptive.

Title: {title}
Content: {(body or "")[:PROMPT_BODY_CHARS]}

Respond with ONLY the summary sentence, nothing else."""


# ---------------------------------------------------------
# Response parsing
# ---------------------------------------------------------
def _valid_entries(entries: Any, valid_names: Iterable[str], min_confidence: float) -> list[ScoredName]:
    if not isinstance(entries, list):
        return []

    allowed = set(valid_names)
    seen: set[str] = set()
    out: list[ScoredName] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        if not isinstance(name, str):
            continue
        try:
            confidence = float(entry.get("confidence"))
        except (TypeError, ValueError):
            continue
        if not math.isfinite(confidence):
            continue
        if name not in allowed or name in seen or confidence < min_confidence:
            continue
        seen.add(name)
        out.append(ScoredName(name=name, confidence=min(confidence, CONFIDENCE_CAP)))
    return out


def parse_category_response(text: str, valid_names: Iterable[str], catch_all: str) -> tuple[ScoredName, ...]:
    default = (ScoredName(catch_all, DEFAULT_CONFIDENCE),)
    try:
        payload = extract_json_object(text)
    except ClassificationParseError as e:
        logger.warning("Unparseable category response, using %s: %s", catch_all, e)
        return default

    valid = _valid_entries(payload.get("categories"), valid_names, CATEGORY_MIN_CONFIDENCE)
    return tuple(valid) or default


def parse_product_area_response(text: str, valid_names: Iterable[str]) -> tuple[ScoredName, ...]:
    try:
        payload = extract_json_object(text)
    except ClassificationParseError as e:
        logger.warning("Unparseable product-area response: %s", e)
        return ()

    valid = _valid_entries(payload.get("product_areas"), valid_names, PRODUCT_AREA_MIN_CONFIDENCE)
    valid.sort(key=lambda s: s.confidence, reverse=True)
    return tuple(valid[:MAX_PRODUCT_AREAS])


# ---------------------------------------------------------
# Classifier
# ---------------------------------------------------------
class LLMClassifier:
    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 500,
        catch_all: str = "General",
    ) -> None:
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.catch_all = catch_all

    @classmethod
    def from_settings(cls, cfg: Settings, client: Optional[AsyncOpenAI] = None) -> Optional["LLMClassifier"]:
        client = client or build_llm_client(cfg)
        if client is None:
            return None
        return cls(
            client,
            model=cfg.llm_model,
            temperature=cfg.llm_temperature,
            max_tokens=cfg.llm_max_tokens,
            catch_all=cfg.catch_all_category,
        )

    async def _complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        with metrics.llm_duration.time():
            completion = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=max_tokens or self.max_tokens,
            )
        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""

    async def _call(self, prompt: str, fallback: tuple[ScoredName, ...]) -> Union[str, LLMRateLimited, LLMFailed]:
        try:
            return await self._complete(prompt)
        except Exception as e:
            if is_rate_limit_error(e):
                metrics.rate_limit_hits.inc()
                logger.warning("⚠️ LLM rate limit hit: %s", e)
                return LLMRateLimited(reason=str(e))
            metrics.llm_failures.inc()
            logger.error("LLM classification error: %s", e)
            return LLMFailed(reason=str(e), fallback=fallback)

    async def classify_categories(self, title: str, body: str, valid_names: Sequence[str]) -> LLMResult:
        prompt = build_category_prompt(title, body, valid_names, self.catch_all)
        fallback = (ScoredName(self.catch_all, DEFAULT_CONFIDENCE),)

        response = await self._call(prompt, fallback)
        if not isinstance(response, str):
            return response
        return LLMSuccess(parse_category_response(response, valid_names, self.catch_all))

    async def classify_product_areas(self, title: str, body: str, valid_names: Sequence[str]) -> LLMResult:
        prompt = build_product_area_prompt(title, body, valid_names)

        response = await self._call(prompt, ())
        if not isinstance(response, str):
            return response
        return LLMSuccess(parse_product_area_response(response, valid_names))

    async def summarize(self, title: str, body: str) -> Optional[str]:
        """
        One-sentence summary for the dashboard.
        - Raises RateLimitedError so backfills can halt.
        - Returns None on any other failure.
        """
        try:
            text = await self._complete(build_summary_prompt(title, body), max_tokens=100)
        except Exception as e:
            if is_rate_limit_error(e):
                metrics.rate_limit_hits.inc()
                raise RateLimitedError(str(e)) from e
            metrics.llm_failures.inc()
            logger.error("Summary generation error: %s", e)
            return None

        summary = text.strip()
        return summary[:SUMMARY_MAX_CHARS] or None
