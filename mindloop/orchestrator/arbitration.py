"""Proposal arbitration for the control loop.

The arbitrator reads every proposal from the current round together with the
state snapshot and asks the reasoning model for a single Decision: one action
or an ordered list of actions, their payloads, and wholesale replacements for
the working-memory lists.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from mindloop.core.config import ArbitrationConfig, PromptLoader
from mindloop.core.models import ActionKind, Decision, Proposal
from mindloop.llm.client import LLMMessage, ReasoningModel
from mindloop.llm.response_parser import extract_json_block

logger = logging.getLogger("mindloop.orchestrator.arbitration")

STATE_UPDATE_KEYS = ("goals", "memories")

DEFAULT_SYSTEM_PROMPT = (
    "You are the global workspace of an agent. You weigh proposals from "
    "specialised modules and decide what the agent does next."
)

ARBITRATOR_PROMPT = """Current working memory state (includes goals, memories and newMessages):
{state}

Proposals from modules:
{proposals}

Your task:
- Read all proposals carefully
- Review recent messages (state.newMessages) to learn what happened: successes, failures, patterns
- Decide the next action(s); you may combine insights from several proposals
- Return a SINGLE action or an ARRAY of actions to execute in order

Actions:
- "respond": send a message to the user (continues the cycle)
- "decompose": break a goal into sub-goals (continues the cycle)
- "call_tool": execute a tool (continues the cycle)
- "termination": end the cycle when the task is complete or nothing more is needed

When returning an array of actions, payload should be an array of the same length.

State updates:
- goals: the complete list of current goals (replaces existing goals)
- memories: the complete list of working memory items to keep (replaces existing memories).
  Record what failed and why, what worked, and lessons with enough detail to avoid
  repeating ineffective methods. Drop memories that are no longer relevant.

Output ONLY valid JSON:
{{
  "action": "respond" | ["respond", "call_tool"] | "decompose" | "call_tool" | "termination",
  "payload": {{ ... }} | [{{ ... }}, {{ ... }}],
  "stateUpdates": {{"goals": [...], "memories": [...]}},
  "reasoning": "brief explanation of your decision"
}}"""

_VALID_ACTIONS = {a.value for a in ActionKind}


def normalize_actions(raw: Any) -> ActionKind | list[ActionKind]:
    """Drop unknown action names.

    A single unknown action becomes ``respond``; a list with nothing valid
    left becomes ``[respond]``.
    """
    if isinstance(raw, list):
        actions = [ActionKind(a) for a in raw if isinstance(a, str) and a in _VALID_ACTIONS]
        return actions or [ActionKind.RESPOND]
    if isinstance(raw, str) and raw in _VALID_ACTIONS:
        return ActionKind(raw)
    return ActionKind.RESPOND


def _normalize_payload(raw: Any, action: ActionKind | list[ActionKind]) -> dict | list[dict]:
    if isinstance(action, list):
        if isinstance(raw, list):
            return [p if isinstance(p, dict) else {} for p in raw]
        if isinstance(raw, dict) and raw:
            return [raw]
        return []
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, list) and raw and isinstance(raw[0], dict):
        return raw[0]
    return {}


def _normalize_state_updates(raw: Any) -> dict[str, list[Any]]:
    if not isinstance(raw, dict):
        return {}
    return {
        key: list(raw[key])
        for key in STATE_UPDATE_KEYS
        if isinstance(raw.get(key), list)
    }


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


def arbitrate(
    proposals: list[Proposal],
    state_snapshot: dict[str, Any],
    model: ReasoningModel,
    system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    temperature: float = 0.3,
    max_tokens: Optional[int] = None,
) -> Optional[Decision]:
    """Turn a round of proposals into a Decision.

    Returns None when there are no proposals, when the model call fails, or
    when its output cannot be parsed.
    """
    if not proposals:
        logger.warning("No proposals to arbitrate")
        return None

    prompt = ARBITRATOR_PROMPT.format(
        state=_dump(state_snapshot),
        proposals=_dump([p.model_dump() for p in proposals]),
    )
    messages = [
        LLMMessage(role="system", content=system_prompt),
        LLMMessage(role="user", content=prompt),
    ]

    try:
        response = model.call(
            messages,
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
        )
    except Exception as e:
        logger.error("Arbitration call failed: %s", e)
        return None

    parsed = extract_json_block(response.content)
    if parsed is None:
        logger.error("Arbitration response could not be parsed as JSON")
        return None

    action = normalize_actions(parsed.get("action"))
    decision = Decision(
        action=action,
        payload=_normalize_payload(parsed.get("payload"), action),
        state_updates=_normalize_state_updates(parsed.get("stateUpdates")),
        reasoning=str(parsed.get("reasoning") or "No reasoning provided"),
    )
    logger.info(
        "Decision: actions=%s reasoning=%s",
        [a.value for a in decision.actions()],
        decision.reasoning[:120],
    )
    return decision


class Arbitrator:
    """Config-bound wrapper around :func:`arbitrate`."""

    def __init__(
        self,
        model: ReasoningModel,
        config: Optional[ArbitrationConfig] = None,
        prompt_loader: Optional[PromptLoader] = None,
    ):
        self.model = model
        self.config = config or ArbitrationConfig()
        self._prompt_loader = prompt_loader or PromptLoader()

    def arbitrate(
        self,
        proposals: list[Proposal],
        state_snapshot: dict[str, Any],
    ) -> Optional[Decision]:
        return arbitrate(
            proposals,
            state_snapshot,
            self.model,
            system_prompt=self._prompt_loader.load(
                "arbitrator_system.txt", default=DEFAULT_SYSTEM_PROMPT
            ),
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
