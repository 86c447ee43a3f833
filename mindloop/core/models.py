"""All Pydantic data models for mindloop.

Defines the data contracts shared by the attention system, the evaluators,
the arbitrator, the control loop and the planning tree.
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class UrgencyLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FocusLevel(str, enum.Enum):
    NARROW = "narrow"
    BROAD = "broad"


class ActionKind(str, enum.Enum):
    RESPOND = "respond"
    DECOMPOSE = "decompose"
    CALL_TOOL = "call_tool"
    TERMINATION = "termination"


class GoalStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class LoopState(str, enum.Enum):
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"


class StopReason(str, enum.Enum):
    TERMINATED = "terminated"
    NO_DECISION = "no_decision"
    MAX_ITERATIONS = "max_iterations"


# ---------------------------------------------------------------------------
# Conversation / tools
# ---------------------------------------------------------------------------

class ToolCall(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    arguments: Union[str, dict[str, Any]] = Field(default_factory=dict)


class ToolResult(BaseModel):
    tool_call_id: str
    content: str
    is_error: bool = False


class ConversationMessage(BaseModel):
    role: str  # "user", "assistant", "system", "tool"
    content: str = ""
    timestamp: datetime = Field(default_factory=_now)
    tool_calls: Optional[list[ToolCall]] = None
    tool_call_id: Optional[str] = None
    run_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Attention
# ---------------------------------------------------------------------------

class OrientingAnalysis(BaseModel):
    """What to attend to in the incoming message."""
    topic: str = "general"
    task: Optional[str] = None
    focus_level: FocusLevel = FocusLevel.BROAD
    is_continuation: bool = False
    previous_topic: Optional[str] = None


class AlertingAnalysis(BaseModel):
    urgency: UrgencyLevel = UrgencyLevel.MEDIUM
    reasoning: Optional[str] = None


class FocusState(BaseModel):
    """Sustained focus for one agent."""
    agent_id: str
    current_topic: str
    current_task: Optional[str] = None
    urgency: UrgencyLevel = UrgencyLevel.MEDIUM
    focus_level: FocusLevel = FocusLevel.BROAD
    last_updated: datetime = Field(default_factory=_now)
    turn_count: int = 1
    last_conversation_id: Optional[str] = None


class AttentionState(BaseModel):
    agent_id: str
    orienting: OrientingAnalysis
    alerting: AlertingAnalysis
    focus: Optional[FocusState] = None
    timestamp: datetime = Field(default_factory=_now)


class FilterCriteria(BaseModel):
    topic: Optional[str] = None
    task: Optional[str] = None
    min_relevance: float = 0.3


class AllocationDecision(BaseModel):
    memory_limit: int
    memory_types: list[str] = Field(default_factory=list)
    priority: float = 0.5


class RelevanceScore(BaseModel):
    score: float
    reason: Optional[str] = None


class ReadinessState(BaseModel):
    level: UrgencyLevel
    alertness: float
    last_updated: datetime = Field(default_factory=_now)


# ---------------------------------------------------------------------------
# Deliberation
# ---------------------------------------------------------------------------

class WorkingMemory(BaseModel):
    """Run-scoped goals and standing memories."""
    goals: list[Any] = Field(default_factory=list)
    memories: list[Any] = Field(default_factory=list)


class Proposal(BaseModel):
    """One evaluator's suggested contribution to the current turn."""
    module: str
    confidence: float = Field(ge=0.0, le=1.0)
    priority: int = Field(default=0, ge=0, le=10)
    payload: dict[str, Any] = Field(default_factory=dict)
    reasoning: str = "No reasoning provided"


class Decision(BaseModel):
    """Arbitrated next step(s) for the current iteration."""
    action: Union[ActionKind, list[ActionKind]]
    payload: Union[dict[str, Any], list[dict[str, Any]]] = Field(default_factory=dict)
    state_updates: dict[str, list[Any]] = Field(default_factory=dict)
    reasoning: str = "No reasoning provided"

    def actions(self) -> list[ActionKind]:
        return list(self.action) if isinstance(self.action, list) else [self.action]

    def payload_for(self, index: int) -> dict[str, Any]:
        """Payload paired with the action at ``index``.

        Falls back to the first payload when the payload list is shorter than
        the action list, and to an empty dict when there is no payload at all.
        """
        payloads = self.payload if isinstance(self.payload, list) else [self.payload]
        if index < len(payloads) and payloads[index] is not None:
            return payloads[index]
        if payloads and payloads[0] is not None:
            return payloads[0]
        return {}


class ActionOutcome(BaseModel):
    should_continue: bool
    detail: Optional[str] = None


class RunResult(BaseModel):
    run_id: str
    response: str
    iterations: int = 0
    stop_reason: StopReason = StopReason.TERMINATED


# ---------------------------------------------------------------------------
# Goal / task tree
# ---------------------------------------------------------------------------

class _TreeNodeBase(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    parent_id: Optional[str] = None
    children: list[str] = Field(default_factory=list)
    order: int = 0
    progress: int = Field(default=0, ge=0, le=100)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def touch(self) -> None:
        self.updated_at = _now()


class GoalNode(_TreeNodeBase):
    type: Literal["goal"] = "goal"
    goal_status: GoalStatus = GoalStatus.PENDING


class TaskNode(_TreeNodeBase):
    type: Literal["task"] = "task"
    task_status: TaskStatus = TaskStatus.PENDING
    urgency: UrgencyLevel = UrgencyLevel.MEDIUM
    priority: float = 0.5
    source: Optional[str] = None
    result: Any = None
    error: Optional[str] = None


GoalTaskNode = Annotated[Union[GoalNode, TaskNode], Field(discriminator="type")]


class TaskStep(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    description: Optional[str] = None
    order: int = 0
    completed: bool = False
    requires_confirmation: bool = False
    confirmation_reason: Optional[str] = None
    result: Any = None
    error: Optional[str] = None


class TreeSnapshot(BaseModel):
    """Persistence handoff: ``nodes`` is authoritative, the rest are derived."""
    root: Optional[str] = None
    nodes: dict[str, GoalTaskNode] = Field(default_factory=dict)
    execution_path: list[str] = Field(default_factory=list)
    active_node_id: Optional[str] = None


class FallbackDecision(BaseModel):
    should_create_fallback: bool
    fallback_task: Optional[TaskNode] = None
    reasoning: str = ""


class SwitchingDecision(BaseModel):
    should_switch: bool
    reasoning: str = ""
    continuity_strength: Optional[float] = None
