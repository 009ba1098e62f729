"""Per-post classification: strategy selection, fallback and persistence.

Posts move Unclassified -> Classifying -> Classified | Skipped. The LLM is
tried first when configured; an ``LLMFailed`` result falls back to keyword
scoring, while ``LLMRateLimited`` aborts the batch through RateLimitedError.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from redditpulse.classification.keywords import classify_by_keywords
from redditpulse.classification.llm import (
    DEFAULT_CONFIDENCE,
    LLMClassifier,
    LLMFailed,
    LLMRateLimited,
    LLMResult,
    LLMSuccess,
    PRODUCT_AREA_MIN_CONFIDENCE,
    ScoredName,
)
from redditpulse.classification.taxonomy import DEFAULT_KEYWORD_TABLE, TaxonomySnapshot
from redditpulse.core import metrics
from redditpulse.core.exceptions import RateLimitedError
from redditpulse.core.rate_limit import RequestPacer
from redditpulse.db.models import Post
from redditpulse.db.store import ClassificationStore

logger = logging.getLogger("redditpulse.classification")

CATEGORIES = "categories"
PRODUCT_AREAS = "product_areas"


class Status(str, enum.Enum):
    CLASSIFIED = "classified"
    SKIPPED = "skipped"
    ALREADY_CLASSIFIED = "already_classified"


class Strategy(str, enum.Enum):
    LLM = "llm"
    KEYWORDS = "keywords"
    CATCH_ALL = "catch_all"
    NONE = "none"


@dataclass
class Outcome:
    post_id: int
    status: Status
    strategy: Strategy = Strategy.NONE
    assignments: list[tuple[int, float]] = field(default_factory=list)


class ClassificationOrchestrator:
    def __init__(
        self,
        store: ClassificationStore,
        keyword_table: Mapping[str, Sequence[str]],
        llm: Optional[LLMClassifier] = None,
        pacer: Optional[RequestPacer] = None,
        min_confidence: float = 0.25,
        catch_all: str = "General",
    ) -> None:
        self.store = store
        self.keyword_table = keyword_table
        self.llm = llm
        self.pacer = pacer or RequestPacer(0)
        self.min_confidence = min_confidence
        self.catch_all = catch_all
        self._snapshot: Optional[TaxonomySnapshot] = None

    # ---------------------------------------------------------
    # Taxonomy snapshot
    # ---------------------------------------------------------
    async def refresh_taxonomy(self) -> TaxonomySnapshot:
        """Rebuild the name -> id table. Call once at the start of each batch."""
        self._snapshot = await self.store.snapshot()
        logger.info(
            "Taxonomy v%s loaded: %s assignable categories, %s product areas",
            self._snapshot.version,
            len(self._snapshot.category_ids),
            len(self._snapshot.product_area_ids),
        )
        return self._snapshot

    async def _taxonomy(self) -> TaxonomySnapshot:
        if self._snapshot is None:
            await self.refresh_taxonomy()
        return self._snapshot

    async def _call_llm(self, coro_factory) -> LLMResult:
        await self.pacer.wait()
        return await coro_factory()

    # ---------------------------------------------------------
    # Categories
    # ---------------------------------------------------------
    async def classify_categories(self, post: Post) -> Outcome:
        """
        Classify one post into leaf categories and store the assignments.
        - No-op if the post already has assignments under the current taxonomy.
        - Raises RateLimitedError when the LLM reports quota exhaustion.
        """
        taxonomy = await self._taxonomy()

        if await self.store.has_category_assignments(post.id, taxonomy.version):
            return Outcome(post.id, Status.ALREADY_CLASSIFIED)

        strategy = Strategy.KEYWORDS
        scored: list[ScoredName] = []

        if self.llm is not None:
            result = await self._call_llm(
                lambda: self.llm.classify_categories(post.title, post.content, taxonomy.category_names)
            )
            match result:
                case LLMRateLimited(reason=reason):
                    raise RateLimitedError(reason)
                case LLMSuccess(assignments=assignments):
                    strategy = Strategy.LLM
                    scored = list(assignments)
                case LLMFailed(reason=reason):
                    logger.warning("LLM failed for post %s, using keywords: %s", post.id, reason)

        if strategy is Strategy.KEYWORDS:
            matches = classify_by_keywords(post.title, post.content, self.keyword_table)
            scored = [ScoredName(m.name, m.confidence) for m in matches]

        assignments = self._resolve(scored, taxonomy.category_ids, self.min_confidence)

        if not assignments:
            catch_all_id = taxonomy.category_id(self.catch_all)
            if catch_all_id is None:
                logger.info("Post %s matched nothing and no '%s' category exists", post.id, self.catch_all)
                return Outcome(post.id, Status.SKIPPED)
            strategy = Strategy.CATCH_ALL
            assignments = [(catch_all_id, DEFAULT_CONFIDENCE)]

        await self.store.insert_category_assignments(post.id, assignments, taxonomy.version)
        metrics.classifications.labels(CATEGORIES, strategy.value).inc()
        return Outcome(post.id, Status.CLASSIFIED, strategy, assignments)

    # ---------------------------------------------------------
    # Product areas
    # ---------------------------------------------------------
    async def classify_product_areas(self, post: Post) -> Outcome:
        """
        LLM-only product-area tagging (top-2). No forced fallback: a failed
        call leaves the post for a later backfill.
        """
        taxonomy = await self._taxonomy()

        if self.llm is None or not taxonomy.product_area_ids:
            return Outcome(post.id, Status.SKIPPED)

        if await self.store.has_product_area_assignments(post.id):
            return Outcome(post.id, Status.ALREADY_CLASSIFIED)

        result = await self._call_llm(
            lambda: self.llm.classify_product_areas(post.title, post.content, taxonomy.product_area_names)
        )
        match result:
            case LLMRateLimited(reason=reason):
                raise RateLimitedError(reason)
            case LLMFailed(reason=reason):
                logger.warning("Product-area LLM call failed for post %s: %s", post.id, reason)
                return Outcome(post.id, Status.SKIPPED, Strategy.LLM)
            case LLMSuccess(assignments=scored):
                pass

        assignments = self._resolve(scored, taxonomy.product_area_ids, PRODUCT_AREA_MIN_CONFIDENCE)[:2]
        if not assignments:
            return Outcome(post.id, Status.SKIPPED, Strategy.LLM)

        await self.store.insert_product_area_assignments(post.id, assignments)
        metrics.classifications.labels(PRODUCT_AREAS, Strategy.LLM.value).inc()
        return Outcome(post.id, Status.CLASSIFIED, Strategy.LLM, assignments)

    # ---------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------
    @staticmethod
    def _resolve(
        scored: Sequence[ScoredName], ids: Mapping[str, int], min_confidence: float
    ) -> list[tuple[int, float]]:
        """Map names to ids, dropping unknown names and sub-threshold scores."""
        out: list[tuple[int, float]] = []
        seen: set[int] = set()
        for item in sorted(scored, key=lambda s: s.confidence, reverse=True):
            target = ids.get(item.name)
            if target is None or target in seen or item.confidence < min_confidence:
                continue
            seen.add(target)
            out.append((target, item.confidence))
        return out


def build_orchestrator(
    store: ClassificationStore,
    cfg,
    llm: Optional[LLMClassifier] = None,
    pacer: Optional[RequestPacer] = None,
    keyword_table: Optional[Mapping[str, Sequence[str]]] = None,
) -> ClassificationOrchestrator:
    """Wire an orchestrator from settings; the LLM is used only when configured."""
    if llm is None:
        llm = LLMClassifier.from_settings(cfg)
    return ClassificationOrchestrator(
        store,
        keyword_table=keyword_table if keyword_table is not None else DEFAULT_KEYWORD_TABLE,
        llm=llm,
        pacer=pacer or RequestPacer(cfg.llm_request_delay_seconds),
        min_confidence=cfg.min_confidence,
        catch_all=cfg.catch_all_category,
    )
