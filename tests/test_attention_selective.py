"""Tests for mindloop/attention/selective.py — relevance scoring and filtering."""

from __future__ import annotations

import pytest

from mindloop.attention.selective import create_filter_criteria, filter_by_relevance, score_relevance
from mindloop.core.models import FocusState, RelevanceScore, UrgencyLevel


def _focus(topic="bread baking", task=None, urgency=UrgencyLevel.MEDIUM) -> FocusState:
    return FocusState(agent_id="a", current_topic=topic, current_task=task, urgency=urgency)


class TestFilterCriteria:
    def test_no_focus(self):
        criteria = create_filter_criteria(None)
        assert criteria.topic is None
        assert criteria.min_relevance == 0.3

    @pytest.mark.parametrize("urgency,threshold", [
        (UrgencyLevel.LOW, 0.3),
        (UrgencyLevel.MEDIUM, 0.4),
        (UrgencyLevel.HIGH, 0.5),
        (UrgencyLevel.CRITICAL, 0.6),
    ])
    def test_threshold_by_urgency(self, urgency, threshold):
        criteria = create_filter_criteria(_focus(task="proof dough", urgency=urgency))
        assert criteria.topic == "bread baking"
        assert criteria.task == "proof dough"
        assert criteria.min_relevance == threshold


class TestScoreRelevance:
    def test_no_focus_is_neutral(self):
        assert score_relevance("anything", None).score == 0.5

    def test_topic_and_keywords(self):
        result = score_relevance("Notes on Bread Baking at home", _focus())
        assert result.score == pytest.approx(0.7)
        assert "topic match" in result.reason

    def test_partial_keywords(self):
        result = score_relevance("sourdough bread recipe", _focus())
        assert result.score == pytest.approx(0.15)

    def test_task_match_capped(self):
        result = score_relevance("bread baking: proof dough overnight", _focus(task="proof dough"))
        assert result.score == pytest.approx(1.0)

    def test_no_match(self):
        result = score_relevance("stock prices", _focus())
        assert result.score == 0.0
        assert result.reason == "no match"

    def test_short_words_ignored(self):
        result = score_relevance("an apple", _focus(topic="an orange"))
        assert result.score == 0.0


class TestFilterByRelevance:
    def test_keeps_items_at_threshold(self):
        items = ["a", "b", "c"]
        scores = [RelevanceScore(score=0.2), RelevanceScore(score=0.4), RelevanceScore(score=0.9)]
        assert filter_by_relevance(items, scores, 0.4) == ["b", "c"]

    def test_unscored_items_dropped(self):
        assert filter_by_relevance(["a", "b"], [RelevanceScore(score=1.0)], 0.1) == ["a"]
