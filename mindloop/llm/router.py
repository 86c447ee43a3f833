"""Model router for mindloop.

Resolves component roles (arbitrator, evaluator, attention, tactical, ...)
to OpenRouter model IDs using the user-managed config/models.yaml file.
"""

from __future__ import annotations

import logging

from mindloop.core.config import ModelRegistry
from mindloop.llm.client import BoundModel, OpenRouterClient

logger = logging.getLogger("mindloop.llm.router")


class ModelRouter:
    """Maps component roles to LLM model IDs."""

    def __init__(self, registry: ModelRegistry):
        self.registry = registry

    def get_model(self, role: str) -> str:
        """Resolve a role to its configured model ID.

        Raises:
            ConfigError: If role not found in models.yaml.
        """
        model = self.registry.get_model(role)
        logger.debug("Resolved role '%s' -> model '%s'", role, model)
        return model

    def get_model_chain(self, role: str) -> list[str]:
        """Resolve a role to [primary, fallbacks...], de-duplicated."""
        primary = self.get_model(role)
        fallbacks = self.registry.get_fallback_models(role)

        chain: list[str] = []
        for model in [primary, *fallbacks]:
            if model and model not in chain:
                chain.append(model)

        logger.debug("Resolved model chain for role '%s': %s", role, chain)
        return chain

    def bind(self, client: OpenRouterClient, role: str) -> BoundModel:
        """Return a reasoning model for ``role`` backed by ``client``."""
        return BoundModel(client, self.get_model_chain(role))
