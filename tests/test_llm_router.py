"""Tests for mindloop/llm/router.py — role resolution and binding."""

from __future__ import annotations

import pytest

from mindloop.core.config import LLMConfig, ModelRegistry
from mindloop.core.exceptions import ConfigError
from mindloop.llm.client import BoundModel, OpenRouterClient
from mindloop.llm.router import ModelRouter


class TestModelRouter:
    def test_get_model(self, model_registry):
        assert ModelRouter(model_registry).get_model("arbitrator") == "test/arbitrator"

    def test_unknown_role(self, model_registry):
        with pytest.raises(ConfigError):
            ModelRouter(model_registry).get_model("oracle")

    def test_chain_with_fallbacks(self, model_registry):
        assert ModelRouter(model_registry).get_model_chain("arbitrator") == ["test/arbitrator", "test/fallback"]

    def test_chain_deduplicated(self):
        registry = ModelRegistry(roles={"a": "m1"}, fallbacks={"a": ["m1", "m2", "m2", ""]})
        assert ModelRouter(registry).get_model_chain("a") == ["m1", "m2"]

    def test_bind(self, model_registry):
        client = OpenRouterClient(config=LLMConfig(), api_key="k")
        bound = ModelRouter(model_registry).bind(client, "arbitrator")
        assert isinstance(bound, BoundModel)
        assert bound.client is client
        assert bound.models == ["test/arbitrator", "test/fallback"]
        assert bound.primary_model == "test/arbitrator"
