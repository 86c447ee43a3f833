"""Reactive planning: deciding when to switch tasks and remembering where we were."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Optional

from mindloop.core.models import GoalNode, SwitchingDecision, TaskNode
from mindloop.llm.client import LLMMessage, ReasoningModel
from mindloop.llm.response_parser import clamp, extract_json_block

logger = logging.getLogger("mindloop.planning.switcher")

SWITCHER_SYSTEM_PROMPT = (
    "You are responsible for task switching decisions. Given the current task "
    "and a new task, decide whether to switch.\n\n"
    'Return JSON: {"shouldSwitch": true/false, "reasoning": "...", '
    '"continuityStrength": 0.0-1.0}'
)


@dataclass
class TaskContext:
    """Saved state for resuming an interrupted task."""
    task_id: str
    context: dict[str, Any]
    saved_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class SwitchRecord:
    from_task_id: Optional[str]
    to_task_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


def _describe(node: TaskNode | GoalNode) -> str:
    urgency = node.urgency.value if isinstance(node, TaskNode) else "N/A"
    return (
        f"- Title: {node.title}\n"
        f"- Urgency: {urgency}\n"
        f"- Progress: {node.progress}%\n"
        f"- Type: {node.type}\n"
        f"- Description: {node.description or 'none'}"
    )


class TaskSwitcher:

    def __init__(self, model: ReasoningModel, max_tokens: int = 300):
        self.model = model
        self.max_tokens = max_tokens
        self._saved_contexts: dict[str, TaskContext] = {}
        self._switch_history: list[SwitchRecord] = []

    def should_switch(
        self,
        current: Optional[TaskNode | GoalNode],
        new: TaskNode | GoalNode,
    ) -> SwitchingDecision:
        if current is None:
            return SwitchingDecision(should_switch=True, reasoning="No current task, can start new task")
        if current.id == new.id:
            return SwitchingDecision(should_switch=False, reasoning="Same task, continue execution")

        messages = [
            LLMMessage(role="system", content=SWITCHER_SYSTEM_PROMPT),
            LLMMessage(
                role="user",
                content=f"Current Task:\n{_describe(current)}\n\nNew Task:\n{_describe(new)}",
            ),
        ]
        try:
            response = self.model.call(messages, temperature=0.3, max_tokens=self.max_tokens)
            parsed = extract_json_block(response.content)
            if parsed is None:
                raise ValueError("switching response is not a JSON object")
        except Exception as e:
            logger.warning("Switch decision failed: %s", e)
            return SwitchingDecision(should_switch=True, reasoning="Decision failed, defaulting to switch")

        strength = parsed.get("continuityStrength")
        return SwitchingDecision(
            should_switch=bool(parsed.get("shouldSwitch")),
            reasoning=str(parsed.get("reasoning") or "Model decision"),
            continuity_strength=clamp(strength, 0.0, 1.0) if strength is not None else None,
        )

    def save_task_context(self, task_id: str, context: dict[str, Any]) -> None:
        self._saved_contexts[task_id] = TaskContext(task_id=task_id, context=dict(context))

    def get_task_context(self, task_id: str) -> Optional[TaskContext]:
        return self._saved_contexts.get(task_id)

    def clear_context(self, task_id: str) -> None:
        self._saved_contexts.pop(task_id, None)

    def record_switch(self, from_task_id: Optional[str], to_task_id: str) -> None:
        self._switch_history.append(SwitchRecord(from_task_id=from_task_id, to_task_id=to_task_id))

    def get_switch_history(self) -> list[SwitchRecord]:
        return list(self._switch_history)
