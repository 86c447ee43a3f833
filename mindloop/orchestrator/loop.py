"""Control loop for mindloop.

One run handles one incoming user message:
  attention → state snapshot → evaluator fan-out → arbitration → actions

and repeats until an action terminates the run, the arbitrator has nothing
to decide, or the iteration cap is reached. The reply is the latest assistant
message in the transcript, with a fixed fallback when there is none.
"""

from __future__ import annotations

import json
import logging
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional

from mindloop.attention.controller import AttentionController, make_allocation_decision
from mindloop.core.config import LoopConfig
from mindloop.core.exceptions import ConfigError
from mindloop.core.models import (
    AttentionState,
    ConversationMessage,
    Decision,
    LoopState,
    Proposal,
    RunResult,
    StopReason,
)
from mindloop.evaluators.base import BaseEvaluator
from mindloop.llm.client import ReasoningModel
from mindloop.orchestrator.actions import ActionContext, ActionHandler
from mindloop.orchestrator.arbitration import Arbitrator
from mindloop.orchestrator.conversation import ConversationLog
from mindloop.orchestrator.diagnostics import DiagnosticsCollector
from mindloop.orchestrator.working_memory import WorkingMemoryManager
from mindloop.planning.manager import PlanningManager
from mindloop.tools.executor import ToolExecutor

logger = logging.getLogger("mindloop.orchestrator.loop")


def _attention_summary(state: AttentionState) -> dict[str, Any]:
    allocation = make_allocation_decision(state)
    return {
        "topic": state.orienting.topic,
        "task": state.orienting.task,
        "focus_level": state.orienting.focus_level.value,
        "urgency": state.alerting.urgency.value,
        "turn_count": state.focus.turn_count if state.focus else None,
        "memory_limit": allocation.memory_limit,
        "memory_types": allocation.memory_types,
    }


def _message_summary(message: ConversationMessage) -> dict[str, Any]:
    data: dict[str, Any] = {
        "role": message.role,
        "content": message.content,
        "timestamp": message.timestamp.isoformat(),
    }
    if message.tool_calls:
        data["tool_calls"] = [{"name": c.name, "arguments": c.arguments} for c in message.tool_calls]
    if message.tool_call_id:
        data["tool_call_id"] = message.tool_call_id
    return data


class ControlLoop:
    """Iteration-bounded deliberation loop for a single run.

    Injected dependencies:
        evaluators: Proposal evaluators, fanned out concurrently each iteration.
        arbitrator: Chooses the Decision from the round's proposals.
        conversation: Transcript store read for deltas and written by actions.
        attention: Optional attention controller, consulted once per run.
        planning: Optional planning facade used by decompose/call_tool actions.
        tool_executor: Optional tool collaborator for call_tool actions.
        responder: Optional model used when a respond action carries no text.
        diagnostics: Per-iteration snapshot collector.

    Raises:
        ConfigError: If no evaluators are given.
    """

    def __init__(
        self,
        evaluators: list[BaseEvaluator],
        arbitrator: Arbitrator,
        conversation: ConversationLog,
        attention: Optional[AttentionController] = None,
        planning: Optional[PlanningManager] = None,
        tool_executor: Optional[ToolExecutor] = None,
        responder: Optional[ReasoningModel] = None,
        config: Optional[LoopConfig] = None,
        diagnostics: Optional[DiagnosticsCollector] = None,
        agent_id: str = "default",
    ):
        if not evaluators:
            raise ConfigError("ControlLoop requires at least one evaluator")
        self.evaluators = list(evaluators)
        self.arbitrator = arbitrator
        self.conversation = conversation
        self.attention = attention
        self.planning = planning
        self.tool_executor = tool_executor
        self.responder = responder
        self.config = config or LoopConfig()
        self.diagnostics = diagnostics or DiagnosticsCollector(
            max_history=self.config.diagnostics_history,
            debug_dir=self.config.debug_dir,
        )
        self.agent_id = agent_id
        self.state = LoopState.STOPPED
        self.working_memory = WorkingMemoryManager()

    def run(
        self,
        message: str,
        conversation_id: str,
        run_id: Optional[str] = None,
        seed_memories: Optional[str] = None,
    ) -> RunResult:
        """Deliberate on ``message`` until the run stops.

        Args:
            message: The incoming user message.
            conversation_id: Transcript to read from and write to.
            run_id: Optional run identifier; generated when omitted.
            seed_memories: Relevant memories text used to seed working memory.

        Returns:
            RunResult with the reply text, iteration count and stop reason.
        """
        run_id = run_id or str(uuid.uuid4())
        self.state = LoopState.RUNNING
        self.working_memory.initialize(seed_memories)
        self.conversation.add_message(conversation_id, "user", message, run_id=run_id)
        self.diagnostics.start_run(run_id, conversation_id)

        handler = ActionHandler(ActionContext(
            conversation_id=conversation_id,
            run_id=run_id,
            user_message=message,
            conversation=self.conversation,
            tool_executor=self.tool_executor,
            planning=self.planning,
            responder=self.responder,
        ))

        logger.info("Run %s started: '%s'", run_id, message[:100])
        max_iterations = self.config.max_iterations
        stop_reason = StopReason.MAX_ITERATIONS
        attention_state: Optional[AttentionState] = None
        last_message_count = 0
        iteration = 0

        while iteration < max_iterations:
            iteration += 1
            logger.debug("Iteration %d/%d", iteration, max_iterations)

            transcript = self.conversation.get_conversation(conversation_id)
            new_messages = transcript[last_message_count:]
            last_message_count = len(transcript)

            snapshot = self._build_snapshot(new_messages, attention_state)
            consult_attention = iteration == 1 and self.attention is not None
            proposals, fresh_attention = self._collect(message, snapshot, conversation_id, consult_attention)
            if fresh_attention is not None:
                attention_state = fresh_attention
                snapshot["attention"] = _attention_summary(attention_state)
            logger.info("Collected %d proposals", len(proposals))

            decision = self.arbitrator.arbitrate(proposals, snapshot)
            self.diagnostics.record_iteration(iteration, proposals, decision, snapshot)

            if decision is None:
                logger.warning("No decision from arbitrator, stopping")
                stop_reason = StopReason.NO_DECISION
                break

            handler.context.working_memory = self.working_memory.get_state()
            if not self._execute(handler, decision):
                stop_reason = StopReason.TERMINATED
                break

            self.working_memory.update(decision.state_updates)
        else:
            logger.warning("Reached max iterations (%d), stopping", max_iterations)

        self.state = LoopState.STOPPED
        self.diagnostics.complete_run(stop_reason.value)
        response = self._final_response(conversation_id)
        logger.info("Run %s completed after %d iterations (%s)", run_id, iteration, stop_reason.value)
        return RunResult(
            run_id=run_id,
            response=response,
            iterations=iteration,
            stop_reason=stop_reason,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build_snapshot(
        self,
        new_messages: list[ConversationMessage],
        attention_state: Optional[AttentionState],
    ) -> dict[str, Any]:
        memory = self.working_memory.get_state()
        snapshot: dict[str, Any] = {
            "goals": memory.goals,
            "memories": memory.memories,
            "newMessages": [_message_summary(m) for m in new_messages],
        }
        if attention_state is not None:
            snapshot["attention"] = _attention_summary(attention_state)
        if self.planning is not None:
            plan = self.planning.summary()
            if plan:
                snapshot["plan"] = plan
        return snapshot

    def _collect(
        self,
        message: str,
        snapshot: dict[str, Any],
        conversation_id: str,
        consult_attention: bool,
    ) -> tuple[list[Proposal], Optional[AttentionState]]:
        """Fan out to every evaluator (and attention) and wait for all of them."""
        state_text = json.dumps(snapshot, indent=2, default=str)
        workers = max(1, min(self.config.evaluator_workers, len(self.evaluators) + 1))

        with ThreadPoolExecutor(max_workers=workers) as pool:
            attention_future: Optional[Future] = None
            if consult_attention:
                attention_future = pool.submit(
                    self.attention.process_message, message, self.agent_id, conversation_id,
                )
            futures = {
                pool.submit(evaluator.evaluate, message, state_text): evaluator.name
                for evaluator in self.evaluators
            }

            proposals: list[Proposal] = []
            for future, name in futures.items():
                try:
                    proposal = future.result()
                except Exception as e:
                    logger.warning("Evaluator '%s' raised: %s", name, e)
                    continue
                if proposal is not None:
                    proposals.append(proposal)

            attention_state: Optional[AttentionState] = None
            if attention_future is not None:
                try:
                    attention_state = attention_future.result()
                except Exception as e:
                    logger.warning("Attention processing raised: %s", e)

        proposals.sort(key=lambda p: p.module)
        return proposals, attention_state

    def _execute(self, handler: ActionHandler, decision: Decision) -> bool:
        """Run the decision's actions in order; False once one says stop."""
        for index, action in enumerate(decision.actions()):
            payload = decision.payload_for(index)
            try:
                outcome = handler.execute(action, payload)
            except Exception as e:
                logger.error("Action '%s' failed: %s", action.value, e, exc_info=True)
                continue
            logger.debug("Action '%s': %s", action.value, outcome.detail)
            if not outcome.should_continue:
                return False
        return True

    def _final_response(self, conversation_id: str) -> str:
        for message in reversed(self.conversation.get_conversation(conversation_id)):
            if message.role == "assistant" and message.content:
                return message.content
        return self.config.fallback_response
