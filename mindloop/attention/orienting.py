"""Orienting: decide what the incoming message is about."""

from __future__ import annotations

import logging
from typing import Optional

from mindloop.core.models import FocusLevel, FocusState, OrientingAnalysis
from mindloop.llm.client import LLMMessage, ReasoningModel
from mindloop.llm.response_parser import extract_json_block

logger = logging.getLogger("mindloop.attention.orienting")

ORIENTING_SYSTEM_PROMPT = (
    "You are the orienting system of attention. Analyze the message to determine what to attend to.\n\n"
    "Determine:\n"
    "1. Main topic/focus (2-5 words)\n"
    "2. Active task/goal (if any)\n"
    "3. Focus level: narrow (specific, focused) or broad (exploratory, general)\n"
    "4. Is this continuing previous focus or a new topic?\n\n"
    "Return JSON:\n"
    '{"topic": "main topic in 2-5 words", "task": "active task/goal if any, otherwise omit", '
    '"focusLevel": "narrow" | "broad", "isContinuation": true/false, '
    '"previousTopic": "what was focused on before (if continuation)"}\n'
    "Return ONLY valid JSON, no other text."
)


def analyze_orienting(
    message: str,
    model: ReasoningModel,
    previous_focus: Optional[FocusState] = None,
    max_tokens: int = 200,
) -> OrientingAnalysis:
    """Analyze ``message`` for topic, task and focus level; never raises."""
    content = message
    if previous_focus is not None:
        context = f"Previous focus: {previous_focus.current_topic}"
        if previous_focus.current_task:
            context += f" (task: {previous_focus.current_task})"
        content = f"{context}\n\nCurrent message: {message}"

    messages = [
        LLMMessage(role="system", content=ORIENTING_SYSTEM_PROMPT),
        LLMMessage(role="user", content=content),
    ]
    try:
        response = model.call(messages, temperature=0.3, max_tokens=max_tokens)
        parsed = extract_json_block(response.content)
        if parsed is None:
            raise ValueError("orienting response is not a JSON object")
    except Exception as e:
        logger.warning("Orienting analysis failed: %s", e)
        return OrientingAnalysis()

    task = parsed.get("task")
    previous_topic = parsed.get("previousTopic")
    return OrientingAnalysis(
        topic=str(parsed.get("topic") or "general"),
        task=str(task) if task else None,
        focus_level=FocusLevel.NARROW if parsed.get("focusLevel") == "narrow" else FocusLevel.BROAD,
        is_continuation=bool(parsed.get("isContinuation")),
        previous_topic=str(previous_topic) if previous_topic else None,
    )


def get_attention_direction(analysis: OrientingAnalysis) -> dict[str, Optional[str]]:
    """The active task leads when there is one; the topic is secondary."""
    if analysis.task:
        return {"primary": analysis.task, "secondary": analysis.topic}
    return {"primary": analysis.topic, "secondary": None}


def should_shift_attention(
    current: OrientingAnalysis,
    previous: Optional[OrientingAnalysis] = None,
) -> bool:
    if previous is None:
        return True
    if not current.is_continuation:
        return True
    return current.topic != previous.topic
