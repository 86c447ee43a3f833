"""Selective attention: relevance filtering against the current focus."""

from __future__ import annotations

from typing import Optional, Sequence, TypeVar

from mindloop.core.models import FilterCriteria, FocusState, RelevanceScore, UrgencyLevel

T = TypeVar("T")

NO_FOCUS_MIN_RELEVANCE = 0.3

_MIN_RELEVANCE: dict[UrgencyLevel, float] = {
    UrgencyLevel.LOW: 0.3,
    UrgencyLevel.MEDIUM: 0.4,
    UrgencyLevel.HIGH: 0.5,
    UrgencyLevel.CRITICAL: 0.6,
}


def get_min_relevance(urgency: UrgencyLevel) -> float:
    return _MIN_RELEVANCE[urgency]


def create_filter_criteria(focus: Optional[FocusState]) -> FilterCriteria:
    if focus is None:
        return FilterCriteria(min_relevance=NO_FOCUS_MIN_RELEVANCE)
    return FilterCriteria(
        topic=focus.current_topic,
        task=focus.current_task,
        min_relevance=get_min_relevance(focus.urgency),
    )


def score_relevance(content: str, focus: Optional[FocusState]) -> RelevanceScore:
    """Keyword relevance of ``content`` to ``focus``; 0.5 when unfocused."""
    if focus is None:
        return RelevanceScore(score=0.5)

    score = 0.0
    reasons: list[str] = []
    content_lower = content.lower()
    topic_lower = focus.current_topic.lower()

    if topic_lower in content_lower:
        score += 0.4
        reasons.append("topic match")

    if focus.current_task and focus.current_task.lower() in content_lower:
        score += 0.3
        reasons.append("task match")

    topic_words = topic_lower.split()
    matching = [w for w in topic_words if len(w) > 2 and w in content_lower]
    if matching:
        score += (len(matching) / len(topic_words)) * 0.3
        reasons.append(f"keyword overlap: {len(matching)}/{len(topic_words)}")

    return RelevanceScore(score=min(1.0, score), reason=", ".join(reasons) or "no match")


def filter_by_relevance(
    items: Sequence[T],
    scores: Sequence[RelevanceScore],
    threshold: float,
) -> list[T]:
    """Keep items whose paired score meets ``threshold``; unscored items drop."""
    return [
        item for index, item in enumerate(items)
        if index < len(scores) and scores[index].score >= threshold
    ]
