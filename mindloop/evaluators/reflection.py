"""Reflection evaluator: challenges assumptions and surfaces knowledge gaps."""

from __future__ import annotations

from mindloop.evaluators.base import BaseEvaluator


class ReflectionEvaluator(BaseEvaluator):

    def __init__(self, model, **kwargs):
        super().__init__(name="reflection", model=model, **kwargs)

    def _compose_prompt(self, user_message: str, state_text: str) -> str:
        return (
            "You are the Reflection Module, the agent's capacity for "
            "self-questioning. Examine assumptions, identify knowledge gaps and "
            "surface uncertainties that could affect the next decision.\n\n"
            f'Current user input: "{user_message}"\n'
            f"Current state summary: {state_text}\n\n"
            "Ask yourself:\n"
            "1. Which assumptions might be wrong or unverified?\n"
            "2. What missing information could change the approach?\n"
            "3. Is the current approach chosen deliberately or out of habit?\n"
            "4. Which questions or perspectives are being overlooked?\n\n"
            "If you find nothing significant to challenge, set confidence to 0.0. "
            "Only propose something that meaningfully improves understanding.\n\n"
            "Output ONLY valid JSON:\n"
            "{\n"
            '  "module": "reflection",\n'
            '  "confidence": 0.0-1.0,\n'
            '  "priority": 0-10,\n'
            '  "payload": {"adjustment": "specific course correction", '
            '"learning": "key insight gained", "questions": ["probing question", ...]},\n'
            '  "reasoning": "why these reflections matter"\n'
            "}"
        )
