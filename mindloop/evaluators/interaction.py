"""Interaction evaluator: proposes a direct, conversational reply."""

from __future__ import annotations

from mindloop.evaluators.base import OPT_OUT_NOTE, BaseEvaluator


class InteractionEvaluator(BaseEvaluator):

    def __init__(self, model, **kwargs):
        super().__init__(name="interaction", model=model, **kwargs)

    def _compose_prompt(self, user_message: str, state_text: str) -> str:
        return (
            "You are the Interaction Module, the friendly conversation layer. "
            "Propose a natural, human-like reply, and only speak when a direct "
            "response makes sense.\n\n"
            f'User message: "{user_message}"\n'
            f"Current state: {state_text}\n\n"
            f"{OPT_OUT_NOTE}\n\n"
            "Output ONLY valid JSON:\n"
            "{\n"
            '  "module": "interaction",\n'
            '  "confidence": 0.0-1.0,\n'
            '  "priority": 0-10,\n'
            '  "payload": {"message": "the exact message to send to the user"},\n'
            '  "reasoning": "brief explanation"\n'
            "}"
        )
