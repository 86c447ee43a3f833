"""Tactical executor: step-by-step tracking of one leaf task at a time."""

from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Any, Callable, Optional

from pydantic import ValidationError

from mindloop.core.models import GoalNode, TaskNode, TaskStatus, TaskStep, UrgencyLevel
from mindloop.llm.client import LLMMessage, ReasoningModel
from mindloop.llm.response_parser import extract_json_block
from mindloop.planning.tree import round_half_up

logger = logging.getLogger("mindloop.planning.tactical")

DECOMPOSITION_SYSTEM_PROMPT = (
    "You are responsible for tactical planning. Break the given task down into "
    "actionable steps and return your decision as JSON.\n\n"
    "Each step needs a clear, descriptive title that says what will be done. "
    'Do NOT use generic titles like "Step 1". Use action verbs and be specific '
    '(e.g. "Create project directory", "Write configuration file").\n\n'
    'Return JSON: {"stepsRequired": true/false, "steps": [{"title": "...", '
    '"description": "...", "order": 0, "requiresConfirmation": false, '
    '"confirmationReason": "..."}]}'
)

_DESCRIPTION_SPLIT = re.compile(r"[→\n\-]")


class TacticalExecutor:
    """Tracks at most one in-flight task and its ordered steps.

    Starting a second task, or operating on a task other than the tracked
    one, is rejected with False.
    """

    def __init__(
        self,
        model: Optional[ReasoningModel] = None,
        timeout_seconds: float = 3600,
        decomposition_max_tokens: int = 500,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.decomposition_max_tokens = decomposition_max_tokens
        self._clock = clock or time.monotonic
        self._current_task: Optional[TaskNode] = None
        self._start_time: Optional[float] = None
        self._steps: list[TaskStep] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_execution(self, task: TaskNode | GoalNode) -> bool:
        if not isinstance(task, TaskNode):
            logger.warning("Cannot execute goal '%s' as a task", task.title)
            return False
        if self._current_task is not None and self._current_task.id != task.id:
            logger.warning(
                "Cannot start task '%s' while '%s' is in flight", task.title, self._current_task.title,
            )
            return False

        self._current_task = task
        self._start_time = self._clock()
        task.task_status = TaskStatus.ACTIVE
        task.progress = 0
        task.touch()

        self._steps = self._load_steps(task) or self._create_steps(task)
        logger.info("Started task '%s' with %d steps", task.title, len(self._steps))
        return True

    def complete_execution(self, task: TaskNode, result: Any = None) -> bool:
        if not self._is_tracked(task):
            return False
        task.task_status = TaskStatus.COMPLETED
        task.progress = 100
        task.result = result
        task.touch()
        self.clear()
        return True

    def fail_execution(self, task: TaskNode, error: str) -> bool:
        if not self._is_tracked(task):
            return False
        task.task_status = TaskStatus.FAILED
        task.error = error
        task.touch()
        self.clear()
        return True

    def clear(self) -> None:
        self._current_task = None
        self._start_time = None
        self._steps = []

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def set_steps(self, steps: list[TaskStep]) -> None:
        """Replace the step list and persist it into the task's metadata."""
        self._steps = list(steps)
        self._persist_steps()

    def complete_current_step(self, result: Any = None) -> bool:
        if self._current_task is None:
            return False
        step = self.get_current_step()
        if step is None:
            return False
        step.completed = True
        step.result = result
        self._persist_steps()
        self.update_progress(self._current_task, self._calculate_progress())
        return True

    def fail_current_step(self, error: str) -> bool:
        """Record ``error`` on the current step without completing it."""
        if self._current_task is None:
            return False
        step = self.get_current_step()
        if step is None:
            return False
        step.error = error
        self._persist_steps()
        return True

    def update_progress(self, task: TaskNode, progress: float) -> bool:
        if not self._is_tracked(task):
            return False
        task.progress = max(0, min(100, round_half_up(progress)))
        task.touch()
        return True

    def get_current_task(self) -> Optional[TaskNode]:
        return self._current_task

    def get_current_step(self) -> Optional[TaskStep]:
        return next((s for s in self._steps if not s.completed), None)

    def get_steps(self) -> list[TaskStep]:
        return list(self._steps)

    def are_all_steps_completed(self) -> bool:
        return all(s.completed for s in self._steps)

    def get_execution_time(self) -> Optional[float]:
        """Seconds since the tracked task started."""
        if self._start_time is None:
            return None
        return self._clock() - self._start_time

    def is_timed_out(self) -> bool:
        elapsed = self.get_execution_time()
        return elapsed is not None and elapsed > self.timeout_seconds

    # ------------------------------------------------------------------
    # Decomposition
    # ------------------------------------------------------------------

    def decompose(self, text: str, urgency: UrgencyLevel = UrgencyLevel.MEDIUM) -> list[TaskStep]:
        """Ask the reasoning model for steps.

        An explicit ``stepsRequired: false`` or an empty list yields no
        steps. Any failure yields a single step titled with ``text``.
        """
        if self.model is None:
            return self._fallback_step(text)

        messages = [
            LLMMessage(role="system", content=DECOMPOSITION_SYSTEM_PROMPT),
            LLMMessage(role="user", content=f"Urgency: {urgency.value}\n\nTask: {text}"),
        ]
        try:
            response = self.model.call(
                messages, temperature=0.3, max_tokens=self.decomposition_max_tokens,
            )
            parsed = extract_json_block(response.content)
            if parsed is None:
                raise ValueError("decomposition response is not a JSON object")

            raw_steps = parsed.get("steps")
            if parsed.get("stepsRequired") is False or raw_steps == []:
                return []
            if not isinstance(raw_steps, list):
                return self._fallback_step(text)

            batch = uuid.uuid4().hex[:8]
            steps: list[TaskStep] = []
            for index, raw in enumerate(raw_steps):
                if not isinstance(raw, dict):
                    continue
                steps.append(TaskStep(
                    id=f"step-{batch}-{index}",
                    title=str(raw.get("title") or raw.get("description") or f"Complete task step {index + 1}"),
                    description=raw.get("description"),
                    order=raw["order"] if isinstance(raw.get("order"), int) else index,
                    requires_confirmation=bool(raw.get("requiresConfirmation")),
                    confirmation_reason=raw.get("confirmationReason"),
                ))
        except Exception as e:
            logger.warning("Step decomposition failed: %s", e)
            return self._fallback_step(text)

        return steps or self._fallback_step(text)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _persist_steps(self) -> None:
        if self._current_task is not None:
            self._current_task.metadata = {
                **self._current_task.metadata,
                "steps": [s.model_dump() for s in self._steps],
            }

    def _is_tracked(self, task: TaskNode | GoalNode) -> bool:
        return (
            isinstance(task, TaskNode)
            and self._current_task is not None
            and task.id == self._current_task.id
        )

    def _calculate_progress(self) -> int:
        if not self._steps:
            return 0
        completed = sum(1 for s in self._steps if s.completed)
        return round_half_up(completed / len(self._steps) * 100)

    @staticmethod
    def _load_steps(task: TaskNode) -> list[TaskStep]:
        raw_steps = task.metadata.get("steps")
        if not isinstance(raw_steps, list) or not raw_steps:
            return []
        try:
            return [s if isinstance(s, TaskStep) else TaskStep.model_validate(s) for s in raw_steps]
        except ValidationError as e:
            logger.warning("Ignoring malformed steps in task '%s' metadata: %s", task.title, e)
            return []

    @staticmethod
    def _create_steps(task: TaskNode) -> list[TaskStep]:
        parts = []
        if task.description:
            parts = [p.strip() for p in _DESCRIPTION_SPLIT.split(task.description) if p.strip()]
        if not parts:
            parts = [task.title]
        return [
            TaskStep(id=f"{task.id}-step-{index}", title=text, order=index)
            for index, text in enumerate(parts)
        ]

    @staticmethod
    def _fallback_step(text: str) -> list[TaskStep]:
        return [TaskStep(id=f"step-{uuid.uuid4().hex[:8]}-0", title=text, order=0)]
