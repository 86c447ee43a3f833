"""Planning evaluator: step-by-step reasoning over goals and sub-goals."""

from __future__ import annotations

from mindloop.evaluators.base import OPT_OUT_NOTE, BaseEvaluator


class PlanningEvaluator(BaseEvaluator):

    def __init__(self, model, **kwargs):
        super().__init__(name="planning", model=model, **kwargs)

    def _compose_prompt(self, user_message: str, state_text: str) -> str:
        return (
            "You are the Reasoning & Planning Module. Think step by step and "
            "manage goals and tasks.\n\n"
            f'User input: "{user_message}"\n'
            f"Current state: {state_text}\n\n"
            "Decide whether to:\n"
            "- Decompose a goal into sub-goals\n"
            "- Mark goals complete\n"
            "- Create new goals\n"
            "- Suggest the next logical step\n\n"
            f"{OPT_OUT_NOTE}\n\n"
            "Output ONLY valid JSON:\n"
            "{\n"
            '  "module": "planning",\n'
            '  "confidence": 0.0-1.0,\n'
            '  "priority": 0-10,\n'
            '  "payload": {"action": "decompose" | "update_memory" | "call_tool", '
            '"goals": [...], "subGoals": [...]},\n'
            '  "reasoning": "brief explanation of your plan"\n'
            "}"
        )
