# redditpulse/classification/keywords.py
"""Deterministic keyword scoring.

Each keyword found in the title earns 3 points; each keyword found anywhere in
``title + body`` earns 1 more. The raw score is normalised against the best
possible score (every keyword in both places) and stretched so a strong match
approaches, but never reaches, certainty.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

TITLE_POINTS = 3
TEXT_POINTS = 1
MAX_POINTS_PER_KEYWORD = TITLE_POINTS + TEXT_POINTS
CONFIDENCE_SCALE = 2.5
CONFIDENCE_CAP = 0.98
MIN_KEYWORD_CONFIDENCE = 0.25


@dataclass(frozen=True)
class KeywordMatch:
    name: str
    score: int
    confidence: float


def score_keywords(title: str, body: str, keywords: Sequence[str]) -> int:
    title_lc = (title or "").lower()
    text_lc = f"{title or ''} {body or ''}".lower()

    score = 0
    for keyword in keywords:
        kw = keyword.lower()
        if kw in title_lc:
            score += TITLE_POINTS
        if kw in text_lc:
            score += TEXT_POINTS
    return score


def keyword_confidence(score: int, keyword_count: int) -> float:
    if keyword_count <= 0:
        return 0.0
    return min(score / (keyword_count * MAX_POINTS_PER_KEYWORD) * CONFIDENCE_SCALE, CONFIDENCE_CAP)


def classify_by_keywords(
    title: str,
    body: str,
    keyword_table: Mapping[str, Sequence[str]],
    min_confidence: float = MIN_KEYWORD_CONFIDENCE,
) -> list[KeywordMatch]:
    """Return qualifying categories ranked by confidence (ties keep table order)."""
    matches: list[KeywordMatch] = []
    for name, keywords in keyword_table.items():
        if not keywords:
            continue
        score = score_keywords(title, body, keywords)
        if score <= 0:
            continue
        confidence = keyword_confidence(score, len(keywords))
        if confidence >= min_confidence:
            matches.append(KeywordMatch(name=name, score=score, confidence=confidence))

    # sorted() is stable, so equal confidences stay in table order
    return sorted(matches, key=lambda m: m.confidence, reverse=True)
