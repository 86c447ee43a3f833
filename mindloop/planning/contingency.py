"""Contingency planning: optional fallback tasks after a task fails."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from mindloop.attention.alerting import validate_urgency
from mindloop.core.models import FallbackDecision, GoalNode, TaskNode, TaskStatus
from mindloop.llm.client import LLMMessage, ReasoningModel
from mindloop.llm.response_parser import clamp, extract_json_block

logger = logging.getLogger("mindloop.planning.contingency")

CONTINGENCY_SYSTEM_PROMPT = (
    "You are responsible for handling task failures. Given a failed task and "
    "its error, decide whether a fallback approach should be created.\n\n"
    'Return JSON: {"shouldCreateFallback": true/false, "fallbackTitle": "...", '
    '"fallbackDescription": "...", "urgency": "low" | "medium" | "high" | "critical", '
    '"priority": 0.0-1.0, "reasoning": "..."}'
)


class ContingencyManager:
    """Asks the reasoning model whether a failed task deserves a fallback.

    Declined and failed judgments are treated the same way: the failure is
    accepted and no fallback is created.
    """

    def __init__(self, model: ReasoningModel, max_tokens: int = 500):
        self.model = model
        self.max_tokens = max_tokens

    def handle_failure(self, task: TaskNode | GoalNode, error: str) -> Optional[TaskNode]:
        return self.decide(task, error).fallback_task

    def decide(self, task: TaskNode | GoalNode, error: str) -> FallbackDecision:
        if not isinstance(task, TaskNode):
            return FallbackDecision(should_create_fallback=False, reasoning="Goals have no fallback")

        context = f"Task: {task.title}\n"
        if task.description:
            context += f"Description: {task.description}\n"
        context += f"Error: {error}\nProgress: {task.progress}%"

        messages = [
            LLMMessage(role="system", content=CONTINGENCY_SYSTEM_PROMPT),
            LLMMessage(role="user", content=context),
        ]
        try:
            response = self.model.call(messages, temperature=0.3, max_tokens=self.max_tokens)
            parsed = extract_json_block(response.content)
            if parsed is None:
                raise ValueError("contingency response is not a JSON object")
        except Exception as e:
            logger.warning("Fallback decision failed for task '%s': %s", task.title, e)
            return FallbackDecision(should_create_fallback=False, reasoning="Decision failed")

        reasoning = str(parsed.get("reasoning") or "")
        if not parsed.get("shouldCreateFallback"):
            logger.info("No fallback for failed task '%s'", task.title)
            return FallbackDecision(should_create_fallback=False, reasoning=reasoning)

        metadata = {k: v for k, v in task.metadata.items() if k != "steps"}
        metadata.update(isFallback=True, originalTaskId=task.id, originalError=error)

        fallback = TaskNode(
            id=f"{task.id}-fallback-{uuid.uuid4().hex[:8]}",
            title=str(parsed.get("fallbackTitle") or f"Fallback: {task.title}"),
            description=str(
                parsed.get("fallbackDescription")
                or f"Fallback for: {task.title}. Original error: {error}"
            ),
            task_status=TaskStatus.PENDING,
            urgency=validate_urgency(parsed.get("urgency")) or task.urgency,
            priority=clamp(parsed.get("priority"), 0.0, 1.0, default=0.5),
            source=task.source,
            parent_id=task.parent_id,
            order=task.order,
            metadata=metadata,
        )
        logger.info("Created fallback task '%s' for '%s'", fallback.title, task.title)
        return FallbackDecision(should_create_fallback=True, fallback_task=fallback, reasoning=reasoning)
