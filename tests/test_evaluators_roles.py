"""Tests for the role evaluators and build_evaluators() in mindloop/evaluators/."""

from __future__ import annotations

import pytest

from mindloop.core.config import EvaluatorConfig
from mindloop.core.exceptions import ConfigError
from mindloop.evaluators import (
    EVALUATOR_REGISTRY,
    AttentionEvaluator,
    CreativityEvaluator,
    CriticismEvaluator,
    InteractionEvaluator,
    MemoryEvaluator,
    PlanningEvaluator,
    ReflectionEvaluator,
    build_evaluators,
)
from tests.conftest import constant_model


class TestRolePrompts:
    @pytest.mark.parametrize("cls,name", [
        (InteractionEvaluator, "interaction"),
        (MemoryEvaluator, "memory"),
        (PlanningEvaluator, "planning"),
        (AttentionEvaluator, "attention"),
        (ReflectionEvaluator, "reflection"),
        (CreativityEvaluator, "creativity"),
        (CriticismEvaluator, "criticism"),
    ])
    def test_prompt_carries_message_and_state(self, cls, name, empty_prompts):
        evaluator = cls(constant_model({}), prompt_loader=empty_prompts)
        prompt = evaluator._compose_prompt("book a table", '{"goals": ["dinner"]}')
        assert evaluator.name == name
        assert "book a table" in prompt
        assert '{"goals": ["dinner"]}' in prompt
        assert f'"module": "{name}"' in prompt

    def test_planning_proposal(self, empty_prompts):
        model = constant_model({
            "confidence": 0.7,
            "priority": 8,
            "payload": {"action": "decompose", "goals": ["Plan trip"], "subGoals": ["Book flight"]},
        })
        proposal = PlanningEvaluator(model, prompt_loader=empty_prompts).evaluate("plan my trip", "{}")
        assert proposal.module == "planning"
        assert proposal.payload["subGoals"] == ["Book flight"]


class TestCreativityEvaluator:
    @pytest.fixture
    def evaluator(self, empty_prompts) -> CreativityEvaluator:
        return CreativityEvaluator(constant_model({}), prompt_loader=empty_prompts)

    def test_higher_temperature(self, evaluator):
        assert evaluator.temperature == 0.7

    def test_requires_failures(self, evaluator):
        content = {"confidence": 0.8, "payload": {"failuresIdentified": [], "solutions": [{"path": "x"}]}}
        assert evaluator.parse_proposal(content) is None

    def test_requires_solutions(self, evaluator):
        content = {"confidence": 0.8, "payload": {"failuresIdentified": ["tool failed"]}}
        assert evaluator.parse_proposal(content) is None

    def test_rejects_non_list_fields(self, evaluator):
        content = {"confidence": 0.8, "payload": {"failuresIdentified": "tool failed", "solutions": ["x"]}}
        assert evaluator.parse_proposal(content) is None

    def test_caps_solutions(self, evaluator):
        content = {
            "confidence": 0.8,
            "payload": {
                "failuresIdentified": ["search returned nothing"],
                "solutions": [{"path": f"option {i}"} for i in range(5)],
            },
        }
        proposal = evaluator.parse_proposal(content)
        assert [s["path"] for s in proposal.payload["solutions"]] == ["option 0", "option 1", "option 2"]
        assert proposal.payload["failuresIdentified"] == ["search returned nothing"]

    def test_configurable_cap(self, empty_prompts):
        evaluator = CreativityEvaluator(constant_model({}), max_solutions=1, prompt_loader=empty_prompts)
        content = {"confidence": 0.8, "payload": {"failuresIdentified": ["x"], "solutions": ["a", "b"]}}
        assert evaluator.parse_proposal(content).payload["solutions"] == ["a"]

    def test_evaluate_uses_creative_temperature(self, empty_prompts):
        model = constant_model({"confidence": 0.0})
        CreativityEvaluator(model, prompt_loader=empty_prompts).evaluate("hi", "{}")
        assert model.call.call_args.kwargs["temperature"] == 0.7


class TestBuildEvaluators:
    def test_default_roles_in_order(self, empty_prompts):
        evaluators = build_evaluators(constant_model({}), prompt_loader=empty_prompts)
        assert [e.name for e in evaluators] == list(EVALUATOR_REGISTRY)

    def test_subset_and_settings(self, empty_prompts):
        config = EvaluatorConfig(enabled=["creativity", "interaction"], min_confidence=0.4, max_creative_solutions=2)
        evaluators = build_evaluators(constant_model({}), config=config, prompt_loader=empty_prompts)
        assert [e.name for e in evaluators] == ["creativity", "interaction"]
        assert evaluators[0].max_solutions == 2
        assert all(e.min_confidence == 0.4 for e in evaluators)

    def test_unknown_role(self):
        with pytest.raises(ConfigError, match="Unknown evaluator role 'oracle'"):
            build_evaluators(constant_model({}), config=EvaluatorConfig(enabled=["oracle"]))
