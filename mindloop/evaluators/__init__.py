"""Proposal evaluators, one per deliberation role."""

from __future__ import annotations

from typing import Optional

from mindloop.core.config import EvaluatorConfig, PromptLoader
from mindloop.core.exceptions import ConfigError
from mindloop.evaluators.attention import AttentionEvaluator
from mindloop.evaluators.base import BaseEvaluator
from mindloop.evaluators.creativity import CreativityEvaluator
from mindloop.evaluators.criticism import CriticismEvaluator
from mindloop.evaluators.interaction import InteractionEvaluator
from mindloop.evaluators.memory import MemoryEvaluator
from mindloop.evaluators.planning import PlanningEvaluator
from mindloop.evaluators.reflection import ReflectionEvaluator
from mindloop.llm.client import ReasoningModel

EVALUATOR_REGISTRY: dict[str, type[BaseEvaluator]] = {
    "interaction": InteractionEvaluator,
    "memory": MemoryEvaluator,
    "planning": PlanningEvaluator,
    "attention": AttentionEvaluator,
    "reflection": ReflectionEvaluator,
    "creativity": CreativityEvaluator,
    "criticism": CriticismEvaluator,
}


def build_evaluators(
    model: ReasoningModel,
    config: Optional[EvaluatorConfig] = None,
    prompt_loader: Optional[PromptLoader] = None,
) -> list[BaseEvaluator]:
    """Instantiate the enabled evaluators in configured order.

    Raises:
        ConfigError: If an enabled role has no evaluator.
    """
    config = config or EvaluatorConfig()
    evaluators: list[BaseEvaluator] = []
    for role in config.enabled:
        cls = EVALUATOR_REGISTRY.get(role)
        if cls is None:
            raise ConfigError(
                f"Unknown evaluator role '{role}'. Known roles: {', '.join(EVALUATOR_REGISTRY)}"
            )
        kwargs = {"prompt_loader": prompt_loader, "min_confidence": config.min_confidence}
        if cls is CreativityEvaluator:
            kwargs["max_solutions"] = config.max_creative_solutions
        evaluators.append(cls(model, **kwargs))
    return evaluators


__all__ = [
    "EVALUATOR_REGISTRY",
    "AttentionEvaluator",
    "BaseEvaluator",
    "CreativityEvaluator",
    "CriticismEvaluator",
    "InteractionEvaluator",
    "MemoryEvaluator",
    "PlanningEvaluator",
    "ReflectionEvaluator",
    "build_evaluators",
]
