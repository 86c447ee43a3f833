"""Criticism evaluator: honest, constructive critique of the current approach."""

from __future__ import annotations

from mindloop.evaluators.base import OPT_OUT_NOTE, BaseEvaluator


class CriticismEvaluator(BaseEvaluator):

    def __init__(self, model, **kwargs):
        super().__init__(name="criticism", model=model, **kwargs)

    def _compose_prompt(self, user_message: str, state_text: str) -> str:
        return (
            "You are the Criticism Module, the agent's sharp inner critic. "
            "Examine the current state and approach and give honest, "
            "constructive criticism.\n\n"
            f'Current user input: "{user_message}"\n'
            f"Current state summary: {state_text}\n\n"
            "Look for:\n"
            "- Logical flaws or contradictions\n"
            "- Risks and likely bad outcomes\n"
            "- Missed opportunities or better alternatives\n"
            "- Overconfidence or unrealistic assumptions\n"
            "- Problems with the current goals or plans\n\n"
            "Then propose a refined or corrected direction.\n\n"
            f"{OPT_OUT_NOTE}\n\n"
            "Output ONLY valid JSON:\n"
            "{\n"
            '  "module": "criticism",\n'
            '  "confidence": 0.0-1.0,\n'
            '  "priority": 0-10,\n'
            '  "payload": {"critique": "summary of problems found", '
            '"suggestion": "recommended improvement", "severity": "low" | "medium" | "high"},\n'
            '  "reasoning": "brief explanation"\n'
            "}"
        )
