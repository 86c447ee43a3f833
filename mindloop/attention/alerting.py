"""Alerting: urgency detection and readiness."""

from __future__ import annotations

import logging
from typing import Any, Optional

from mindloop.core.models import AlertingAnalysis, ReadinessState, UrgencyLevel
from mindloop.llm.client import LLMMessage, ReasoningModel
from mindloop.llm.response_parser import extract_json_block

logger = logging.getLogger("mindloop.attention.alerting")

URGENCY_SYSTEM_PROMPT = (
    "You are the alerting system of attention. Analyze the message and determine urgency level.\n\n"
    "Urgency levels:\n"
    "- critical: Immediate action needed, time-sensitive, urgent requests, emergencies\n"
    "- high: Important queries, complex tasks, needs detailed context, significant requests\n"
    "- medium: Normal questions, standard requests, typical interactions\n"
    "- low: Casual chat, greetings, simple acknowledgments, non-urgent\n\n"
    'Return JSON: {"urgency": "low" | "medium" | "high" | "critical", "reasoning": "brief explanation"}\n'
    "Return ONLY valid JSON, no other text."
)

_ALERTNESS: dict[UrgencyLevel, float] = {
    UrgencyLevel.LOW: 0.3,
    UrgencyLevel.MEDIUM: 0.5,
    UrgencyLevel.HIGH: 0.8,
    UrgencyLevel.CRITICAL: 1.0,
}


def validate_urgency(value: Any) -> Optional[UrgencyLevel]:
    """Return the UrgencyLevel for ``value`` or None if it is not one."""
    try:
        return UrgencyLevel(str(value).strip().lower())
    except ValueError:
        return None


def detect_urgency(
    message: str,
    model: ReasoningModel,
    default: UrgencyLevel = UrgencyLevel.MEDIUM,
    max_tokens: int = 150,
) -> AlertingAnalysis:
    """Classify the urgency of ``message``; never raises."""
    messages = [
        LLMMessage(role="system", content=URGENCY_SYSTEM_PROMPT),
        LLMMessage(role="user", content=message),
    ]
    try:
        response = model.call(messages, temperature=0.3, max_tokens=max_tokens)
        parsed = extract_json_block(response.content)
        if parsed is None:
            raise ValueError("urgency response is not a JSON object")
    except Exception as e:
        logger.warning("Urgency detection failed: %s", e)
        return AlertingAnalysis(urgency=default, reasoning="Analysis failed, using default")

    urgency = validate_urgency(parsed.get("urgency")) or default
    reasoning = parsed.get("reasoning")
    return AlertingAnalysis(
        urgency=urgency,
        reasoning=str(reasoning) if reasoning is not None else None,
    )


def calculate_alertness(urgency: UrgencyLevel) -> float:
    return _ALERTNESS[urgency]


def create_readiness_state(urgency: UrgencyLevel) -> ReadinessState:
    return ReadinessState(level=urgency, alertness=calculate_alertness(urgency))
