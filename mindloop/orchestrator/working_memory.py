"""Run-scoped working memory: the goals and memories carried across iterations."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from mindloop.core.models import WorkingMemory

logger = logging.getLogger("mindloop.orchestrator.working_memory")

_BULLET_RE = re.compile(r"^(?:[-*•]\s*|\d+[.)]\s+)")


def parse_memories(seed_text: Optional[str]) -> list[str]:
    """One memory per non-empty line, list bullets stripped."""
    if not seed_text or not seed_text.strip():
        return []
    memories: list[str] = []
    for line in seed_text.splitlines():
        text = _BULLET_RE.sub("", line.strip()).strip()
        if text:
            memories.append(text)
    return memories


class WorkingMemoryManager:
    """Single-writer holder of the run's WorkingMemory."""

    def __init__(self) -> None:
        self._state = WorkingMemory()

    def initialize(self, seed_text: Optional[str] = None) -> WorkingMemory:
        self._state = WorkingMemory(goals=[], memories=parse_memories(seed_text))
        logger.debug("Working memory initialized with %d memories", len(self._state.memories))
        return self.get_state()

    def update(self, partial: dict[str, Any]) -> WorkingMemory:
        """Replace each list present in ``partial``; absent keys are untouched."""
        if "goals" in partial and partial["goals"] is not None:
            self._state.goals = list(partial["goals"])
        if "memories" in partial and partial["memories"] is not None:
            self._state.memories = list(partial["memories"])
        return self.get_state()

    def get_state(self) -> WorkingMemory:
        return self._state.model_copy(deep=True)
