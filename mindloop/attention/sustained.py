"""Sustained attention: per-agent focus continuity across turns."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Callable, Optional

from mindloop.core.models import AlertingAnalysis, FocusState, OrientingAnalysis

logger = logging.getLogger("mindloop.attention.sustained")

DEFAULT_CONTINUITY_WINDOW_SECONDS = 3600


def is_focus_maintained(
    current: FocusState,
    previous: Optional[FocusState],
    window_seconds: float = DEFAULT_CONTINUITY_WINDOW_SECONDS,
) -> bool:
    """Same topic and task, updated within the continuity window."""
    if previous is None:
        return False
    if current.current_topic != previous.current_topic:
        return False
    if current.current_task != previous.current_task:
        return False
    elapsed = (current.last_updated - previous.last_updated).total_seconds()
    return elapsed <= window_seconds


def calculate_focus_strength(focus: FocusState) -> float:
    """Turn-count based strength in [0, 1], saturating at 10 turns."""
    return min(focus.turn_count / 10, 1.0)


class FocusTracker:
    """Holds one FocusState per agent for the tracker's lifetime."""

    def __init__(
        self,
        window_seconds: float = DEFAULT_CONTINUITY_WINDOW_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.window_seconds = window_seconds
        self._clock = clock or (lambda: datetime.now(UTC))
        self._focus_states: dict[str, FocusState] = {}

    def get_focus(self, agent_id: str) -> Optional[FocusState]:
        return self._focus_states.get(agent_id)

    def update_focus(
        self,
        agent_id: str,
        orienting: OrientingAnalysis,
        alerting: AlertingAnalysis,
        conversation_id: Optional[str] = None,
    ) -> FocusState:
        previous = self.get_focus(agent_id)
        candidate = FocusState(
            agent_id=agent_id,
            current_topic=orienting.topic,
            current_task=orienting.task,
            urgency=alerting.urgency,
            focus_level=orienting.focus_level,
            last_updated=self._clock(),
            turn_count=1,
            last_conversation_id=conversation_id,
        )
        if previous is not None and is_focus_maintained(candidate, previous, self.window_seconds):
            candidate.turn_count = previous.turn_count + 1
        else:
            logger.debug("Focus for agent '%s' shifted to '%s'", agent_id, orienting.topic)

        self._focus_states[agent_id] = candidate
        return candidate

    def clear_focus(self, agent_id: str) -> None:
        self._focus_states.pop(agent_id, None)

    def all_focuses(self) -> list[FocusState]:
        return list(self._focus_states.values())
