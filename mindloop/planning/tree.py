"""Goal/task tree: the hierarchical plan behind multi-step work.

Nodes live in a single id -> node mapping. Parent and children are id
references only, so the tree can be snapshotted and restored without any
object graph. Goal progress is always derived from children; it is
recomputed bottom-up whenever a child completes or reports progress.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Union

from mindloop.core.exceptions import NodeNotFoundError
from mindloop.core.models import (
    GoalNode,
    GoalStatus,
    TaskNode,
    TaskStatus,
    TreeSnapshot,
)

logger = logging.getLogger("mindloop.planning.tree")

Node = Union[GoalNode, TaskNode]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _is_retained(node: Node) -> bool:
    """Children kept across re-decomposition when preserving completed work."""
    if isinstance(node, GoalNode):
        return node.goal_status == GoalStatus.COMPLETED
    return node.task_status in (TaskStatus.COMPLETED, TaskStatus.ACTIVE)


class TreeManager:
    """Owns the goal/task tree. Not thread-safe; one writer at a time."""

    def __init__(self) -> None:
        self._nodes: dict[str, Node] = {}
        self._root_id: Optional[str] = None
        self._execution_path: list[str] = []
        self._active_node_id: Optional[str] = None

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def root(self) -> Optional[Node]:
        return self._nodes.get(self._root_id) if self._root_id else None

    @property
    def execution_path(self) -> list[str]:
        return list(self._execution_path)

    def add_node(self, node: Node, parent_id: Optional[str] = None) -> bool:
        """Insert ``node`` as the root or under ``parent_id``.

        Returns False, leaving the tree unchanged, when the parent is unknown
        or when a second root is added.
        """
        if node.id in self._nodes:
            logger.warning("Node '%s' already exists in tree", node.id)
            return False

        if parent_id is None:
            if self._root_id is not None:
                logger.warning("Tree already has root '%s'; rejecting '%s'", self._root_id, node.id)
                return False
            node.parent_id = None
            self._nodes[node.id] = node
            self._root_id = node.id
        else:
            parent = self._nodes.get(parent_id)
            if parent is None:
                logger.warning("Unknown parent '%s' for node '%s'", parent_id, node.id)
                return False
            node.parent_id = parent_id
            self._nodes[node.id] = node
            parent.children.append(node.id)
            self._sort_children(parent)
            parent.touch()

        self._recalculate_execution_path()
        return True

    def get_node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def get_children(self, node_id: str) -> list[Node]:
        node = self._nodes.get(node_id)
        if node is None:
            return []
        return [self._nodes[c] for c in node.children if c in self._nodes]

    def get_ancestors(self, node_id: str) -> list[Node]:
        """Ancestors from the root down to the node's parent."""
        ancestors: list[Node] = []
        seen = {node_id}
        current = self._nodes.get(node_id)
        while current is not None and current.parent_id:
            if current.parent_id in seen:
                logger.warning("Cycle detected in parent references at '%s'", current.parent_id)
                break
            parent = self._nodes.get(current.parent_id)
            if parent is None:
                break
            seen.add(parent.id)
            ancestors.insert(0, parent)
            current = parent
        return ancestors

    def clear_children(self, node_id: str, preserve_completed: bool = True) -> bool:
        """Drop a node's children ahead of re-decomposition.

        With ``preserve_completed`` only completed goals and completed or
        active tasks survive. Removed children take their subtrees with them.
        """
        node = self._nodes.get(node_id)
        if node is None:
            return False

        kept: list[str] = []
        for child_id in node.children:
            child = self._nodes.get(child_id)
            if child is None:
                continue
            if preserve_completed and _is_retained(child):
                kept.append(child_id)
            else:
                self._remove_subtree(child_id)

        node.children = kept
        node.touch()
        if self._active_node_id and self._active_node_id not in self._nodes:
            self._active_node_id = None
        self._recalculate_execution_path()
        return True

    def get_leaf_tasks(self) -> list[TaskNode]:
        """Depth-first collection of childless task nodes."""
        leaves: list[TaskNode] = []
        if self._root_id is None:
            return leaves
        stack = [self._root_id]
        seen: set[str] = set()
        while stack:
            node_id = stack.pop()
            if node_id in seen:
                continue
            seen.add(node_id)
            node = self._nodes.get(node_id)
            if node is None:
                continue
            if isinstance(node, TaskNode) and not node.children:
                leaves.append(node)
            stack.extend(reversed(node.children))
        return leaves

    def get_all_nodes(self) -> list[Node]:
        return list(self._nodes.values())

    # ------------------------------------------------------------------
    # Status & progress
    # ------------------------------------------------------------------

    def update_node_status(self, node_id: str, status: Union[GoalStatus, TaskStatus, str]) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False

        value = status.value if isinstance(status, (GoalStatus, TaskStatus)) else str(status)
        try:
            if isinstance(node, GoalNode):
                node.goal_status = GoalStatus(value)
            else:
                node.task_status = TaskStatus(value)
        except ValueError:
            logger.warning("Invalid status '%s' for node '%s'", value, node_id)
            return False
        node.touch()

        if value == "completed" and node.parent_id:
            self.update_parent_progress(node.parent_id)
        return True

    def update_parent_progress(self, parent_id: str) -> None:
        """Recompute goal progress from children, walking up the ancestors.

        A completed task counts as 100 whatever its own progress says. A goal
        whose mean reaches 100 is marked completed.
        """
        seen: set[str] = set()
        current_id: Optional[str] = parent_id
        while current_id and current_id not in seen:
            seen.add(current_id)
            parent = self._nodes.get(current_id)
            if not isinstance(parent, GoalNode):
                return

            children = self.get_children(current_id)
            if not children:
                parent.progress = 100 if parent.goal_status == GoalStatus.COMPLETED else 0
                return

            total = 0
            for child in children:
                if isinstance(child, TaskNode) and child.task_status == TaskStatus.COMPLETED:
                    total += 100
                else:
                    total += child.progress
            parent.progress = round_half_up(total / len(children))

            if parent.progress == 100 and parent.goal_status != GoalStatus.COMPLETED:
                parent.goal_status = GoalStatus.COMPLETED
                parent.touch()
                logger.info("Goal '%s' auto-completed", parent.title)

            current_id = parent.parent_id

    def update_node_progress(self, node_id: str, progress: float) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False
        node.progress = max(0, min(100, round_half_up(progress)))
        node.touch()
        if node.parent_id:
            self.update_parent_progress(node.parent_id)
        return True

    def set_active_node(self, node_id: Optional[str]) -> None:
        self._active_node_id = node_id

    def get_active_node(self) -> Optional[Node]:
        if not self._active_node_id:
            return None
        return self._nodes.get(self._active_node_id)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def get_tree(self) -> TreeSnapshot:
        return TreeSnapshot(
            root=self._root_id,
            nodes={node_id: node.model_copy(deep=True) for node_id, node in self._nodes.items()},
            execution_path=list(self._execution_path),
            active_node_id=self._active_node_id,
        )

    def initialize_tree(self, snapshot: TreeSnapshot) -> None:
        """Replace the tree with ``snapshot``.

        ``nodes`` is authoritative; the execution path is recomputed.

        Raises:
            NodeNotFoundError: If the root or active id is not in ``nodes``.
        """
        nodes = {node_id: node.model_copy(deep=True) for node_id, node in snapshot.nodes.items()}
        root_id = snapshot.root
        if root_id is None:
            roots = [n.id for n in nodes.values() if n.parent_id is None]
            root_id = roots[0] if roots else None
        if root_id is not None and root_id not in nodes:
            raise NodeNotFoundError(root_id)
        if snapshot.active_node_id is not None and snapshot.active_node_id not in nodes:
            raise NodeNotFoundError(snapshot.active_node_id)

        self._nodes = nodes
        self._root_id = root_id
        self._active_node_id = snapshot.active_node_id
        self._recalculate_execution_path()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _sort_children(self, node: Node) -> None:
        node.children.sort(key=lambda c: self._nodes[c].order if c in self._nodes else 0)

    def _remove_subtree(self, node_id: str) -> None:
        stack = [node_id]
        while stack:
            current = self._nodes.pop(stack.pop(), None)
            if current is not None:
                stack.extend(current.children)

    def _recalculate_execution_path(self) -> None:
        leaves = sorted(self.get_leaf_tasks(), key=lambda n: n.order)
        self._execution_path = [n.id for n in leaves]
