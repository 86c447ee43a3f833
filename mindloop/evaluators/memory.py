"""Memory evaluator: surfaces past information worth adding to context."""

from __future__ import annotations

from mindloop.evaluators.base import OPT_OUT_NOTE, BaseEvaluator


class MemoryEvaluator(BaseEvaluator):

    def __init__(self, model, **kwargs):
        super().__init__(name="memory", model=model, **kwargs)

    def _compose_prompt(self, user_message: str, state_text: str) -> str:
        return (
            "You are the Memory Module. Recall the most relevant episodic or "
            "semantic memories for this turn and propose adding them to context.\n\n"
            f'User input: "{user_message}"\n'
            f"Current state: {state_text}\n\n"
            f"{OPT_OUT_NOTE} Having no relevant memory to surface is a normal outcome.\n\n"
            "Output ONLY valid JSON:\n"
            "{\n"
            '  "module": "memory",\n'
            '  "confidence": 0.0-1.0,\n'
            '  "priority": 0-10,\n'
            '  "payload": {"type": "episodic" | "semantic" | "add_to_context", '
            '"text": "the memory text to add"},\n'
            '  "reasoning": "brief explanation"\n'
            "}"
        )
