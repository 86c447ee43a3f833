"""Planning facade used by the control loop's actions.

Binds the goal/task tree, the tactical executor and the contingency manager
so that an action can say "decompose this goal" or "that step is done"
without knowing how progress propagates.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from mindloop.attention.alerting import validate_urgency
from mindloop.core.models import (
    GoalNode,
    GoalStatus,
    TaskNode,
    TaskStatus,
    TaskStep,
    UrgencyLevel,
)
from mindloop.planning.contingency import ContingencyManager
from mindloop.planning.switcher import TaskSwitcher
from mindloop.planning.tactical import TacticalExecutor
from mindloop.planning.tree import TreeManager

logger = logging.getLogger("mindloop.planning.manager")


def _subtask_node(item: Any, order: int, source: Optional[str]) -> Optional[TaskNode]:
    """Build a pending task from a title string or a dict description."""
    if isinstance(item, str):
        title = item.strip()
        return TaskNode(title=title, order=order, source=source) if title else None
    if not isinstance(item, dict):
        return None

    title = str(item.get("title") or item.get("description") or "").strip()
    if not title:
        return None
    metadata: dict[str, Any] = {}
    steps = item.get("steps")
    if isinstance(steps, list) and steps:
        metadata["steps"] = [
            TaskStep(id=f"step-{order}-{i}", title=str(s), order=i).model_dump()
            if isinstance(s, str) else s
            for i, s in enumerate(steps)
        ]
    priority = item.get("priority")
    return TaskNode(
        title=title,
        description=item.get("description") if item.get("title") else None,
        order=order,
        urgency=validate_urgency(item.get("urgency")) or UrgencyLevel.MEDIUM,
        priority=float(priority) if isinstance(priority, (int, float)) else 0.5,
        source=source,
        metadata=metadata,
    )


class PlanningManager:
    """Goal decomposition and task execution on top of a single tree."""

    def __init__(
        self,
        tree: Optional[TreeManager] = None,
        executor: Optional[TacticalExecutor] = None,
        contingency: Optional[ContingencyManager] = None,
        switcher: Optional[TaskSwitcher] = None,
        preserve_completed: bool = True,
        max_step_failures: int = 2,
    ):
        self.tree = tree or TreeManager()
        self.executor = executor or TacticalExecutor()
        self.contingency = contingency
        self.switcher = switcher
        self.preserve_completed = preserve_completed
        self.max_step_failures = max(1, max_step_failures)
        self._step_failures = 0

    # ------------------------------------------------------------------
    # Decomposition
    # ------------------------------------------------------------------

    def decompose_goal(
        self,
        title: str,
        subtasks: list[Any],
        description: Optional[str] = None,
        parent_id: Optional[str] = None,
        source: Optional[str] = None,
    ) -> Optional[GoalNode]:
        """Create (or re-decompose) a goal and attach its subtasks.

        A goal with the same title under the same parent is reused: its
        children are cleared, keeping completed work, and the new subtasks
        are appended after whatever survived. Subtasks whose title matches
        a surviving child are not added again.
        """
        if parent_id is None and self.tree.root is not None:
            parent_id = self.tree.root.id

        goal = self._find_goal(title, parent_id)
        if goal is None:
            goal = GoalNode(title=title, description=description)
            if parent_id is not None:
                goal.order = len(self.tree.get_children(parent_id))
            if not self.tree.add_node(goal, parent_id):
                return None
        else:
            self.tree.clear_children(goal.id, preserve_completed=self.preserve_completed)
            current = self.executor.get_current_task()
            if current is not None and self.tree.get_node(current.id) is None:
                self.executor.clear()
            if description:
                goal.description = description

        existing = {child.title.casefold() for child in self.tree.get_children(goal.id)}
        order = len(goal.children)
        for item in subtasks:
            node = _subtask_node(item, order, source)
            if node is None or node.title.casefold() in existing:
                continue
            if self.tree.add_node(node, goal.id):
                existing.add(node.title.casefold())
                order += 1

        goal.goal_status = GoalStatus.ACTIVE
        self.tree.update_parent_progress(goal.id)
        logger.info("Decomposed goal '%s' into %d subtasks", goal.title, len(goal.children))
        return goal

    def _find_goal(self, title: str, parent_id: Optional[str]) -> Optional[GoalNode]:
        if parent_id is None:
            return None
        root = self.tree.root
        if isinstance(root, GoalNode) and root.title == title and root.id == parent_id:
            return root
        for child in self.tree.get_children(parent_id):
            if isinstance(child, GoalNode) and child.title == title:
                return child
        return None

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def start_next_task(self) -> Optional[TaskNode]:
        """Start the first pending leaf task, or return the one in flight."""
        current = self.executor.get_current_task()
        if current is not None:
            return current

        node = self.next_pending_task()
        if node is not None:
            self._start(node)
        return node

    def next_pending_task(self, under: Optional[str] = None) -> Optional[TaskNode]:
        """First pending leaf on the execution path, optionally below goal ``under``."""
        for task_id in self.tree.execution_path:
            node = self.tree.get_node(task_id)
            if not isinstance(node, TaskNode) or node.task_status != TaskStatus.PENDING:
                continue
            if under is None or any(a.id == under for a in self.tree.get_ancestors(task_id)):
                return node
        return None

    def _start(self, task: TaskNode) -> None:
        has_steps = bool(task.metadata.get("steps"))
        if not self.executor.start_execution(task):
            return
        self._step_failures = 0
        if not has_steps and self.executor.model is not None:
            text = task.title if not task.description else f"{task.title}: {task.description}"
            steps = self.executor.decompose(text, task.urgency)
            if steps:
                self.executor.set_steps(steps)
        self.tree.set_active_node(task.id)
        if self.switcher is not None:
            self.switcher.clear_context(task.id)

    def switch_to(self, task_id: str) -> bool:
        """Interrupt the current task for ``task_id`` if the switcher agrees."""
        target = self.tree.get_node(task_id)
        if not isinstance(target, TaskNode) or target.task_status in (
            TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED,
        ):
            return False

        current = self.executor.get_current_task()
        if self.switcher is not None:
            decision = self.switcher.should_switch(current, target)
            if not decision.should_switch:
                return False
        elif current is not None and current.id == target.id:
            return False

        if current is not None:
            if self.switcher is not None:
                self.switcher.save_task_context(current.id, {
                    "progress": current.progress,
                    "steps": [s.model_dump() for s in self.executor.get_steps()],
                })
            current.task_status = TaskStatus.PENDING
            current.touch()
            self.executor.clear()

        if self.switcher is not None:
            self.switcher.record_switch(current.id if current else None, target.id)
        self._start(target)
        return True

    def complete_active_step(self, result: Any = None) -> bool:
        task = self.executor.get_current_task()
        if task is None:
            return False
        if not self.executor.complete_current_step(result):
            return False
        if task.parent_id:
            self.tree.update_parent_progress(task.parent_id)
        if self.executor.are_all_steps_completed():
            self.complete_active_task(result)
        return True

    def complete_active_task(self, result: Any = None) -> bool:
        """Complete the in-flight task and start the next pending one."""
        task = self.executor.get_current_task()
        if task is None or not self.executor.complete_execution(task, result):
            return False
        self.tree.update_node_status(task.id, TaskStatus.COMPLETED)
        self.tree.set_active_node(None)
        logger.info("Completed task '%s'", task.title)
        self.start_next_task()
        return True

    def fail_active_step(self, error: str) -> bool:
        """Record a step error; fail the task once errors pile up or it times out.

        Returns True when the task itself was failed.
        """
        if self.executor.get_current_task() is None:
            return False
        self.executor.fail_current_step(error)
        self._step_failures += 1
        if self._step_failures < self.max_step_failures and not self.executor.is_timed_out():
            return False
        self.fail_active_task(error)
        return True

    def fail_if_timed_out(self) -> bool:
        """Fail the in-flight task when it has run past the executor's timeout."""
        if self.executor.get_current_task() is None or not self.executor.is_timed_out():
            return False
        self.fail_active_task(f"Task timed out after {self.executor.timeout_seconds:g} seconds")
        return True

    def fail_active_task(self, error: str) -> Optional[TaskNode]:
        """Fail the in-flight task and insert a fallback sibling if one is offered.

        The next pending task, the fallback included, is started afterwards.
        """
        task = self.executor.get_current_task()
        if task is None or not self.executor.fail_execution(task, error):
            return None
        self.tree.update_node_status(task.id, TaskStatus.FAILED)
        self.tree.set_active_node(None)
        logger.warning("Task '%s' failed: %s", task.title, error)

        fallback = None
        if self.contingency is not None:
            fallback = self.contingency.handle_failure(task, error)
            if fallback is not None and not self.tree.add_node(fallback, fallback.parent_id):
                fallback = None
        self.start_next_task()
        return fallback

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def summary(self) -> dict[str, Any]:
        """Compact plan view for the state snapshot."""
        root = self.tree.root
        if root is None:
            return {}

        active = self.executor.get_current_task()
        current_step = self.executor.get_current_step()
        tasks = []
        for task_id in self.tree.execution_path:
            node = self.tree.get_node(task_id)
            if isinstance(node, TaskNode):
                tasks.append({
                    "id": node.id,
                    "title": node.title,
                    "status": node.task_status.value,
                    "progress": node.progress,
                })
        return {
            "goal": root.title,
            "progress": root.progress,
            "active_task": active.title if active else None,
            "current_step": current_step.title if current_step else None,
            "tasks": tasks,
        }
