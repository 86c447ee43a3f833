"""Attention evaluator: what deserves focus right now, and what to set aside."""

from __future__ import annotations

from mindloop.evaluators.base import OPT_OUT_NOTE, BaseEvaluator


class AttentionEvaluator(BaseEvaluator):

    def __init__(self, model, **kwargs):
        super().__init__(name="attention", model=model, **kwargs)

    def _compose_prompt(self, user_message: str, state_text: str) -> str:
        return (
            "You are the Attention Module. Decide what the agent should focus on "
            "or ignore, which helps with interruptions and multitasking.\n\n"
            f'User input: "{user_message}"\n'
            f"Current state: {state_text}\n\n"
            f"{OPT_OUT_NOTE} If focus is already clear, stay silent.\n\n"
            "Output ONLY valid JSON:\n"
            "{\n"
            '  "module": "attention",\n'
            '  "confidence": 0.0-1.0,\n'
            '  "priority": 0-10,\n'
            '  "payload": {"focus": "short description of what to focus on", '
            '"ignore": "optional: what to deprioritize"},\n'
            '  "reasoning": "brief explanation"\n'
            "}"
        )
