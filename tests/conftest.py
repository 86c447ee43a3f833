"""Shared fixtures for mindloop tests.

Reasoning models are stood in by MagicMock objects returning LLMResponse;
everything else is the real implementation.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
import yaml

from mindloop.core.config import ModelRegistry, PromptLoader
from mindloop.llm.client import LLMResponse

ROLES = ["arbitrator", "evaluator", "attention", "tactical", "contingency", "switcher", "responder"]


def as_content(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def make_model(*responses: Any) -> MagicMock:
    """A reasoning model that replies with ``responses`` in order.

    Dicts are JSON-encoded; exceptions are raised from ``call``.
    """
    model = MagicMock()
    side_effects = []
    for response in responses:
        if isinstance(response, Exception):
            side_effects.append(response)
        else:
            side_effects.append(LLMResponse(content=as_content(response), model="test/model"))
    model.call.side_effect = side_effects
    return model


def constant_model(response: Any) -> MagicMock:
    """A reasoning model that always replies with ``response``."""
    model = MagicMock()
    model.call.return_value = LLMResponse(content=as_content(response), model="test/model")
    return model


class FakeClock:
    """Settable datetime clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def model_registry() -> ModelRegistry:
    return ModelRegistry(
        roles={
            "arbitrator": "test/arbitrator",
            "evaluator": "test/evaluator",
            "attention": "test/attention",
            "tactical": "test/tactical",
            "contingency": "test/contingency",
            "switcher": "test/switcher",
            "responder": "test/responder",
        },
        fallbacks={"arbitrator": ["test/fallback"]},
    )


@pytest.fixture
def empty_prompts(tmp_path: Path) -> PromptLoader:
    """Prompt loader over an empty directory so built-in defaults are used."""
    prompts = tmp_path / "prompts"
    prompts.mkdir()
    return PromptLoader(prompts)


def write_config(directory: Path, default: dict | None = None, roles: list[str] | None = None) -> Path:
    """Write a config dir whose roles resolve to ``t/<role>`` model ids."""
    (directory / "prompts").mkdir(exist_ok=True)
    (directory / "default.yaml").write_text(yaml.safe_dump(default or {}))
    (directory / "models.yaml").write_text(yaml.safe_dump({
        "roles": {role: f"t/{role}" for role in (ROLES if roles is None else roles)},
    }))
    return directory
