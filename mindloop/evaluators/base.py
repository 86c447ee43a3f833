"""Abstract base evaluator for mindloop.

Adapted from the agent base class pattern (ABC with metrics and structured
logging). An evaluator looks at the latest user message plus a text rendering
of the run state and either returns one Proposal or stays silent.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

from mindloop.core.config import PromptLoader
from mindloop.core.models import Proposal
from mindloop.llm.client import LLMMessage, ReasoningModel
from mindloop.llm.response_parser import clamp, extract_json_block

OPT_OUT_NOTE = (
    "IMPORTANT: If you don't think this module can contribute meaningfully at this "
    "stage, it's perfectly acceptable to return null or indicate very low confidence. "
    "Only propose something if you have a clear, valuable contribution."
)


class BaseEvaluator(ABC):
    """Base class for all proposal evaluators.

    Every evaluator follows the same lifecycle:
    1. Compose a role-specific prompt from the user message and state text
    2. Ask the reasoning model for a JSON proposal
    3. Validate it, returning None when the evaluator opts out

    Subclasses implement `_compose_prompt()` and may override
    `_validate_payload()` for role-specific rules.
    """

    _DEFAULT_SYSTEM_PROMPT = (
        "You are one module in an agent's deliberation system. Each turn, "
        "several modules propose what the agent should do next and an "
        "arbitrator chooses. Respond with a single JSON object only."
    )

    temperature: float = 0.3

    def __init__(
        self,
        name: str,
        model: ReasoningModel,
        prompt_loader: Optional[PromptLoader] = None,
        min_confidence: float = 0.1,
    ):
        self.name = name
        self.model = model
        self.min_confidence = min_confidence
        self._prompt_loader = prompt_loader or PromptLoader()
        self.logger = logging.getLogger(f"mindloop.evaluator.{name}")
        self._metrics: dict[str, Any] = {
            "total_calls": 0,
            "total_proposals": 0,
            "total_absent": 0,
            "total_errors": 0,
            "last_duration_seconds": 0.0,
        }

    @abstractmethod
    def _compose_prompt(self, user_message: str, state_text: str) -> str:
        """Build the role-specific user prompt."""

    def evaluate(self, user_message: str, state_text: str) -> Optional[Proposal]:
        """Return this evaluator's proposal, or None if it has nothing to add.

        Collaborator failures and malformed output are logged and reported as
        no proposal; they never propagate to the caller.
        """
        start = time.monotonic()
        self._metrics["total_calls"] += 1
        try:
            messages = [
                LLMMessage(role="system", content=self._get_system_prompt()),
                LLMMessage(role="user", content=self._compose_prompt(user_message, state_text)),
            ]
            response = self.model.call(
                messages,
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
            proposal = self.parse_proposal(response.content)
        except Exception as e:
            self._metrics["total_errors"] += 1
            self.logger.warning("[%s] Evaluation failed: %s", self.name, e)
            proposal = None
        finally:
            self._metrics["last_duration_seconds"] = time.monotonic() - start

        if proposal is None:
            self._metrics["total_absent"] += 1
        else:
            self._metrics["total_proposals"] += 1
            self.logger.debug(
                "[%s] Proposal: confidence=%.2f priority=%d",
                self.name, proposal.confidence, proposal.priority,
            )
        return proposal

    def parse_proposal(self, content: Any) -> Optional[Proposal]:
        """Validate raw model output into a Proposal.

        Confidence is clamped to [0, 1] and priority to [0, 10]. Confidence
        below the threshold or an empty payload means no proposal.
        """
        parsed = extract_json_block(content)
        if parsed is None:
            self.logger.warning("[%s] Could not parse proposal from response", self.name)
            return None

        confidence = clamp(parsed.get("confidence"), 0.0, 1.0)
        payload = parsed.get("payload")
        if not isinstance(payload, dict) or not payload:
            return None
        if confidence < self.min_confidence:
            return None

        payload = self._validate_payload(payload)
        if payload is None:
            return None

        return Proposal(
            module=str(parsed.get("module") or self.name),
            confidence=confidence,
            priority=int(round(clamp(parsed.get("priority"), 0.0, 10.0))),
            payload=payload,
            reasoning=str(parsed.get("reasoning") or "No reasoning provided"),
        )

    def _validate_payload(self, payload: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Role-specific payload check; None rejects the proposal."""
        return payload

    def _get_system_prompt(self) -> str:
        return self._prompt_loader.load(
            "evaluator_system.txt", default=self._DEFAULT_SYSTEM_PROMPT
        )

    def get_metrics(self) -> dict[str, Any]:
        """Return a copy of the evaluator's runtime metrics."""
        return self._metrics.copy()
