"""Creativity evaluator: alternative solutions, only after real failures."""

from __future__ import annotations

from typing import Any, Optional

from mindloop.evaluators.base import BaseEvaluator


class CreativityEvaluator(BaseEvaluator):
    """Proposes alternatives only when failures are identified.

    A proposal without both ``failuresIdentified`` and ``solutions`` is
    dropped, and solutions beyond ``max_solutions`` are cut.
    """

    temperature = 0.7

    def __init__(self, model, max_solutions: int = 3, **kwargs):
        super().__init__(name="creativity", model=model, **kwargs)
        self.max_solutions = max_solutions

    def _compose_prompt(self, user_message: str, state_text: str) -> str:
        return (
            "You are the Creativity Module. Propose creative solutions ONLY if "
            "actual failures occurred.\n\n"
            f'User input: "{user_message}"\n'
            f"Current state: {state_text}\n\n"
            "Look for actual failures: errors, tool failures, user corrections, "
            "repeated unsuccessful attempts, incomplete goals.\n\n"
            "If no failures are found, set confidence to 0.0. This is fine.\n"
            "If failures are found, propose 2-3 practical alternatives that address them.\n\n"
            "Output JSON:\n"
            "{\n"
            '  "module": "creativity",\n'
            '  "confidence": 0.0-1.0,\n'
            '  "priority": 0-10,\n'
            '  "payload": {\n'
            '    "failuresIdentified": ["failure1", "failure2"],\n'
            '    "solutions": [{"path": "brief solution", "addressesFailure": "which failure", '
            '"approach": "how it differs", "whyBetter": "why better"}]\n'
            "  },\n"
            '  "reasoning": "brief explanation"\n'
            "}"
        )

    def _validate_payload(self, payload: dict[str, Any]) -> Optional[dict[str, Any]]:
        failures = payload.get("failuresIdentified") or []
        solutions = payload.get("solutions") or []
        if not isinstance(failures, list) or not isinstance(solutions, list):
            return None
        if not failures or not solutions:
            return None
        return {**payload, "solutions": solutions[: self.max_solutions]}
