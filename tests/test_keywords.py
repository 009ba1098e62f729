# tests/test_keywords.py
import pytest

from redditpulse.classification.keywords import (
    classify_by_keywords,
    keyword_confidence,
    score_keywords,
)
from redditpulse.classification.taxonomy import DEFAULT_KEYWORD_TABLE

KNOWLEDGE = {"Knowledge": ("sharepoint", "rag")}


def test_title_and_text_points_add_up():
    # 3 (title) + 1 (text) per keyword
    assert score_keywords("SharePoint RAG setup help", "", ("sharepoint", "rag")) == 8
    assert score_keywords("Help", "my sharepoint site", ("sharepoint", "rag")) == 1


def test_strong_match_is_capped():
    matches = classify_by_keywords("SharePoint RAG setup help", "", KNOWLEDGE)

    assert len(matches) == 1
    assert matches[0].name == "Knowledge"
    assert matches[0].score == 8
    assert matches[0].confidence == 0.98


def test_no_match_returns_nothing():
    assert classify_by_keywords("random question", "random question", KNOWLEDGE) == []


def test_weak_match_below_threshold_is_dropped():
    table = {"Wide": ("alpha", "beta", "gamma", "delta")}
    # body-only hit: 1 / 16 * 2.5 = 0.156
    assert classify_by_keywords("Question", "alpha", table) == []
    # title hit: 4 / 16 * 2.5 = 0.625
    [match] = classify_by_keywords("alpha issue", "", table)
    assert match.confidence == pytest.approx(0.625)


def test_ranked_by_confidence_ties_keep_table_order():
    table = {"Weak": ("bar", "baz", "qux", "quux"), "First": ("foo",), "Second": ("foo",)}
    matches = classify_by_keywords("foo bar", "", table)

    assert [m.name for m in matches] == ["First", "Second", "Weak"]
    assert matches[0].confidence == matches[1].confidence == 0.98
    assert matches[2].confidence == pytest.approx(0.625)


def test_keywordless_categories_never_match():
    table = {"General": (), **KNOWLEDGE}
    assert [m.name for m in classify_by_keywords("rag", "", table)] == ["Knowledge"]


def test_confidence_handles_empty_keyword_list():
    assert keyword_confidence(5, 0) == 0.0


def test_default_table_is_read_only_and_leaf_only():
    with pytest.raises(TypeError):
        DEFAULT_KEYWORD_TABLE["New"] = ("x",)

    assert "Knowledge & Data" not in DEFAULT_KEYWORD_TABLE
    assert DEFAULT_KEYWORD_TABLE["General"] == ()
    assert "sharepoint" in DEFAULT_KEYWORD_TABLE["Knowledge"]
