"""Attention controller: per-turn urgency, orienting and focus tracking.

Runs once per incoming message. Each stage degrades to a neutral default on
collaborator failure, so the controller never raises into the control loop.
"""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime
from typing import Callable, Optional

from mindloop.attention.alerting import detect_urgency, validate_urgency
from mindloop.attention.orienting import analyze_orienting
from mindloop.attention.selective import create_filter_criteria
from mindloop.attention.sustained import FocusTracker, calculate_focus_strength
from mindloop.core.config import AttentionConfig
from mindloop.core.models import (
    AlertingAnalysis,
    AllocationDecision,
    AttentionState,
    FilterCriteria,
    FocusState,
    OrientingAnalysis,
    UrgencyLevel,
)
from mindloop.llm.client import ReasoningModel

logger = logging.getLogger("mindloop.attention")

# urgency -> (base memory limit, memory types)
_ALLOCATION_TABLE: dict[UrgencyLevel, tuple[int, list[str]]] = {
    UrgencyLevel.CRITICAL: (20, ["semantic", "episodic", "procedural", "prospective", "emotional"]),
    UrgencyLevel.HIGH: (12, ["semantic", "episodic", "procedural"]),
    UrgencyLevel.MEDIUM: (8, ["semantic", "episodic"]),
    UrgencyLevel.LOW: (4, ["semantic"]),
}

_PRIORITY: dict[UrgencyLevel, float] = {
    UrgencyLevel.CRITICAL: 1.0,
    UrgencyLevel.HIGH: 0.8,
    UrgencyLevel.MEDIUM: 0.5,
    UrgencyLevel.LOW: 0.3,
}


def make_allocation_decision(state: AttentionState) -> AllocationDecision:
    """Size memory retrieval from urgency, widened by sustained focus."""
    urgency = state.alerting.urgency
    base_limit, base_types = _ALLOCATION_TABLE[urgency]
    memory_types = list(base_types)

    limit = base_limit
    if state.focus is not None:
        strength = calculate_focus_strength(state.focus)
        limit = math.ceil(base_limit * (1 + strength * 0.2))
        if state.focus.current_task and "working" not in memory_types:
            memory_types.append("working")

    return AllocationDecision(
        memory_limit=limit,
        memory_types=memory_types,
        priority=_PRIORITY[urgency],
    )


class AttentionController:
    """Decides what the agent attends to for each message.

    Args:
        model: Reasoning collaborator for urgency and orienting analysis.
        config: Attention settings; ``enabled=False`` turns the controller off.
        clock: Time source for focus continuity, injectable for tests.
    """

    def __init__(
        self,
        model: ReasoningModel,
        config: Optional[AttentionConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.model = model
        self.config = config or AttentionConfig()
        self._clock = clock or (lambda: datetime.now(UTC))
        self.tracker = FocusTracker(
            window_seconds=self.config.continuity_window_seconds,
            clock=self._clock,
        )
        self.default_urgency = validate_urgency(self.config.default_urgency) or UrgencyLevel.MEDIUM

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def process_message(
        self,
        message: str,
        agent_id: str,
        conversation_id: Optional[str] = None,
    ) -> Optional[AttentionState]:
        """Analyze ``message`` and update the agent's focus.

        Returns None only when attention is disabled.
        """
        if not self.enabled:
            return None

        try:
            alerting = detect_urgency(
                message,
                self.model,
                default=self.default_urgency,
                max_tokens=self.config.urgency_max_tokens,
            )
            previous_focus = self.tracker.get_focus(agent_id)
            orienting = analyze_orienting(
                message,
                self.model,
                previous_focus=previous_focus,
                max_tokens=self.config.orienting_max_tokens,
            )

            focus: Optional[FocusState] = None
            if self.config.focus_persistence:
                focus = self.tracker.update_focus(agent_id, orienting, alerting, conversation_id)
        except Exception as e:
            logger.warning("Attention processing failed for agent '%s': %s", agent_id, e, exc_info=True)
            return AttentionState(
                agent_id=agent_id,
                orienting=OrientingAnalysis(),
                alerting=AlertingAnalysis(urgency=self.default_urgency),
                timestamp=self._clock(),
            )

        logger.info(
            "Attention for agent '%s': topic='%s' urgency=%s turns=%s",
            agent_id,
            orienting.topic,
            alerting.urgency.value,
            focus.turn_count if focus else "-",
        )
        return AttentionState(
            agent_id=agent_id,
            orienting=orienting,
            alerting=alerting,
            focus=focus,
            timestamp=self._clock(),
        )

    def get_current_focus(self, agent_id: str) -> Optional[FocusState]:
        return self.tracker.get_focus(agent_id)

    def get_filter_criteria(self, agent_id: str) -> FilterCriteria:
        return create_filter_criteria(self.tracker.get_focus(agent_id))

    def clear_focus(self, agent_id: str) -> None:
        self.tracker.clear_focus(agent_id)

    def all_focuses(self) -> list[FocusState]:
        return self.tracker.all_focuses()

    def make_allocation_decision(self, state: AttentionState) -> AllocationDecision:
        return make_allocation_decision(state)
