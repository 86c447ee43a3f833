"""Execution of arbitrated actions.

Each action returns an ActionOutcome; ``should_continue=False`` ends the
control loop. Only ``termination`` stops; every other action continues, even
when it could not do anything useful with its payload.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from mindloop.core.models import (
    ActionKind,
    ActionOutcome,
    ToolCall,
    WorkingMemory,
)
from mindloop.llm.client import LLMMessage, ReasoningModel
from mindloop.orchestrator.conversation import ConversationLog
from mindloop.planning.manager import PlanningManager
from mindloop.tools.executor import ToolExecutor

logger = logging.getLogger("mindloop.orchestrator.actions")

RESPONDER_SYSTEM_PROMPT = (
    "You are a helpful assistant. Write the next reply to the user, following "
    "the guidance given by the agent's deliberation."
)

_MESSAGE_KEYS = ("message", "text", "content", "response")
_SUBTASK_KEYS = ("subGoals", "subtasks", "tasks", "steps")


@dataclass
class ActionContext:
    """Everything an action may touch during one run."""
    conversation_id: str
    run_id: str
    user_message: str
    conversation: ConversationLog
    working_memory: WorkingMemory = field(default_factory=WorkingMemory)
    tool_executor: Optional[ToolExecutor] = None
    planning: Optional[PlanningManager] = None
    responder: Optional[ReasoningModel] = None
    responder_system_prompt: str = RESPONDER_SYSTEM_PROMPT


def _first_text(payload: dict[str, Any], keys: tuple[str, ...]) -> Optional[str]:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _tool_calls_from_payload(payload: dict[str, Any]) -> list[ToolCall]:
    raw_calls = payload.get("tool_calls") or payload.get("toolCalls")
    if not isinstance(raw_calls, list):
        raw_calls = [payload]

    calls: list[ToolCall] = []
    for raw in raw_calls:
        if not isinstance(raw, dict):
            continue
        name = raw.get("tool") or raw.get("name") or raw.get("toolName")
        if not isinstance(name, str) or not name:
            continue
        arguments = raw.get("arguments", raw.get("args", raw.get("parameters", {})))
        if not isinstance(arguments, (str, dict)):
            arguments = {}
        kwargs: dict[str, Any] = {"name": name, "arguments": arguments}
        if isinstance(raw.get("id"), str):
            kwargs["id"] = raw["id"]
        calls.append(ToolCall(**kwargs))
    return calls


class ActionHandler:
    """Dispatches ActionKind values to their handlers."""

    def __init__(self, context: ActionContext):
        self.context = context

    def execute(self, action: ActionKind, payload: dict[str, Any]) -> ActionOutcome:
        if action == ActionKind.TERMINATION:
            return ActionOutcome(should_continue=False, detail="terminated")
        if action == ActionKind.RESPOND:
            return self._respond(payload)
        if action == ActionKind.CALL_TOOL:
            return self._call_tool(payload)
        if action == ActionKind.DECOMPOSE:
            return self._decompose(payload)
        logger.warning("Unhandled action '%s'", action)
        return ActionOutcome(should_continue=True, detail="unhandled")

    # ------------------------------------------------------------------
    # respond
    # ------------------------------------------------------------------

    def _respond(self, payload: dict[str, Any]) -> ActionOutcome:
        ctx = self.context
        text = _first_text(payload, _MESSAGE_KEYS)
        if text is None:
            text = self._generate_reply(payload)
        if text is None:
            logger.warning("Respond action had no message and none could be generated")
            return ActionOutcome(should_continue=True, detail="no message")

        ctx.conversation.add_message(ctx.conversation_id, "assistant", text, run_id=ctx.run_id)
        return ActionOutcome(should_continue=True, detail="responded")

    def _generate_reply(self, payload: dict[str, Any]) -> Optional[str]:
        ctx = self.context
        if ctx.responder is None:
            return None

        messages: list[LLMMessage] = [LLMMessage(role="system", content=ctx.responder_system_prompt)]
        for message in ctx.conversation.get_conversation(ctx.conversation_id):
            if message.role in ("user", "assistant"):
                messages.append(LLMMessage(role=message.role, content=message.content))
        if payload:
            messages.append(LLMMessage(role="system", content=f"Guidance for this reply: {payload}"))

        try:
            response = ctx.responder.call(messages)
        except Exception as e:
            logger.warning("Reply generation failed: %s", e)
            return None
        content = (response.content or "").strip()
        return content or None

    # ------------------------------------------------------------------
    # call_tool
    # ------------------------------------------------------------------

    def _call_tool(self, payload: dict[str, Any]) -> ActionOutcome:
        ctx = self.context
        calls = _tool_calls_from_payload(payload)
        if not calls:
            logger.warning("call_tool action without a tool name: %s", payload)
            return ActionOutcome(should_continue=True, detail="no tool")

        ctx.conversation.add_message(
            ctx.conversation_id, "assistant", "", tool_calls=calls, run_id=ctx.run_id,
        )

        if ctx.tool_executor is None:
            for call in calls:
                ctx.conversation.add_message(
                    ctx.conversation_id, "tool", "Error: no tool executor configured",
                    tool_call_id=call.id, run_id=ctx.run_id,
                )
            return ActionOutcome(should_continue=True, detail="no executor")

        try:
            results = ctx.tool_executor.execute_tools(
                {"conversation_id": ctx.conversation_id, "run_id": ctx.run_id}, calls,
            )
        except Exception as e:
            logger.warning("Tool execution failed: %s", e, exc_info=True)
            for call in calls:
                ctx.conversation.add_message(
                    ctx.conversation_id, "tool", f"Error: {e}",
                    tool_call_id=call.id, run_id=ctx.run_id,
                )
            return ActionOutcome(should_continue=True, detail="tool error")

        planning = ctx.planning
        if planning is not None:
            planning.fail_if_timed_out()

        for result in results:
            ctx.conversation.add_message(
                ctx.conversation_id, "tool", result.content,
                tool_call_id=result.tool_call_id, run_id=ctx.run_id,
            )
            if planning is None or planning.executor.get_current_task() is None:
                continue
            if result.is_error:
                planning.fail_active_step(result.content)
            else:
                planning.complete_active_step(result.content)

        return ActionOutcome(should_continue=True, detail=f"{len(results)} tool result(s)")

    # ------------------------------------------------------------------
    # decompose
    # ------------------------------------------------------------------

    def _decompose(self, payload: dict[str, Any]) -> ActionOutcome:
        ctx = self.context
        if ctx.planning is None:
            logger.warning("decompose action with no planning manager configured")
            return ActionOutcome(should_continue=True, detail="no planner")

        title = _first_text(payload, ("goal", "title"))
        goals = payload.get("goals")
        if title is None and isinstance(goals, list) and goals:
            first = goals[0]
            if isinstance(first, dict):
                first = first.get("title")
            if isinstance(first, str) and first.strip():
                title = first
        title = title or ctx.user_message

        subtasks: list[Any] = []
        for key in _SUBTASK_KEYS:
            if isinstance(payload.get(key), list) and payload[key]:
                subtasks = list(payload[key])
                break
        if not subtasks:
            subtasks = [title]

        goal = ctx.planning.decompose_goal(
            title,
            subtasks,
            description=payload.get("description") if isinstance(payload.get("description"), str) else None,
            source=ctx.run_id,
        )
        if goal is None:
            return ActionOutcome(should_continue=True, detail="decomposition rejected")

        task = None
        current = ctx.planning.executor.get_current_task()
        if current is not None and current.parent_id != goal.id:
            candidate = ctx.planning.next_pending_task(under=goal.id)
            if candidate is not None and ctx.planning.switch_to(candidate.id):
                task = candidate
        if task is None:
            task = ctx.planning.start_next_task()
        detail = f"goal '{goal.title}'"
        if task is not None:
            detail += f", active task '{task.title}'"
        return ActionOutcome(should_continue=True, detail=detail)
