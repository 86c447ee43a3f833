"""Component factory for mindloop.

Creates and wires the infrastructure (config, LLM client, model router) and
the decision components (attention, evaluators, arbitrator, planning) so a
control loop can be built from a single bundle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from mindloop.attention.controller import AttentionController
from mindloop.core.config import (
    AppConfig,
    ModelRegistry,
    PromptLoader,
    load_config,
    load_model_registry,
)
from mindloop.evaluators import build_evaluators
from mindloop.evaluators.base import BaseEvaluator
from mindloop.llm.client import BoundModel, OpenRouterClient
from mindloop.llm.router import ModelRouter
from mindloop.orchestrator.arbitration import Arbitrator
from mindloop.orchestrator.conversation import ConversationLog, InMemoryConversationLog
from mindloop.orchestrator.diagnostics import DiagnosticsCollector
from mindloop.orchestrator.loop import ControlLoop
from mindloop.planning.contingency import ContingencyManager
from mindloop.planning.manager import PlanningManager
from mindloop.planning.switcher import TaskSwitcher
from mindloop.planning.tactical import TacticalExecutor
from mindloop.planning.tree import TreeManager
from mindloop.tools.executor import CallableToolExecutor

logger = logging.getLogger("mindloop.factory")


@dataclass
class ComponentBundle:
    """Container for all initialized components.

    The factory builds the bundle once; `build_loop()` hands the pieces to a
    ControlLoop.
    """

    config: AppConfig
    model_registry: ModelRegistry
    llm_client: OpenRouterClient
    model_router: ModelRouter
    attention: AttentionController
    evaluators: list[BaseEvaluator]
    arbitrator: Arbitrator
    planning: PlanningManager
    responder: BoundModel
    conversation: ConversationLog = field(default_factory=InMemoryConversationLog)
    tool_executor: CallableToolExecutor = field(default_factory=CallableToolExecutor)

    def build_loop(self, agent_id: str = "default") -> ControlLoop:
        return ControlLoop(
            evaluators=self.evaluators,
            arbitrator=self.arbitrator,
            conversation=self.conversation,
            attention=self.attention if self.config.attention.enabled else None,
            planning=self.planning,
            tool_executor=self.tool_executor,
            responder=self.responder,
            config=self.config.loop,
            diagnostics=DiagnosticsCollector(
                max_history=self.config.loop.diagnostics_history,
                debug_dir=self.config.loop.debug_dir,
            ),
            agent_id=agent_id,
        )


class ComponentFactory:
    """Factory for creating and wiring all mindloop components.

    Usage:
        bundle = ComponentFactory.create(api_key="sk-or-...")
        result = bundle.build_loop().run("hello", conversation_id="c1")
    """

    @staticmethod
    def create(
        config_dir: Optional[Path] = None,
        env: Optional[str] = None,
        api_key: Optional[str] = None,
        tools: Optional[dict[str, Callable[..., Any]]] = None,
    ) -> ComponentBundle:
        """Create and wire all components.

        Args:
            config_dir: Path to config/ directory. Default: project root/config.
            env: Environment name for config overlay (e.g., "test").
            api_key: OpenRouter API key. Falls back to OPENROUTER_API_KEY env var.
            tools: Optional name -> callable mapping for the tool executor.

        Returns:
            ComponentBundle with all components ready to use.

        Raises:
            ConfigError: If a required model role is missing from models.yaml.
        """
        logger.info("Initializing components...")

        # --- Config ---
        config = load_config(config_dir=config_dir, env=env)
        model_registry = load_model_registry(config_dir=config_dir)
        prompt_loader = PromptLoader(config_dir / "prompts" if config_dir else None)
        logger.info("Config loaded (%d model roles)", len(model_registry.roles))

        # --- LLM ---
        llm_client = OpenRouterClient(config=config.llm, api_key=api_key)
        model_router = ModelRouter(model_registry)
        logger.info("LLM client configured (base_url=%s)", config.llm.base_url)

        # --- Attention & deliberation ---
        attention = AttentionController(
            model_router.bind(llm_client, "attention"),
            config=config.attention,
        )
        evaluators = build_evaluators(
            model_router.bind(llm_client, "evaluator"),
            config=config.evaluators,
            prompt_loader=prompt_loader,
        )
        arbitrator = Arbitrator(
            model_router.bind(llm_client, "arbitrator"),
            config=config.arbitration,
            prompt_loader=prompt_loader,
        )

        # --- Planning ---
        planning = PlanningManager(
            tree=TreeManager(),
            executor=TacticalExecutor(
                model=model_router.bind(llm_client, "tactical"),
                timeout_seconds=config.planning.task_timeout_seconds,
                decomposition_max_tokens=config.planning.decomposition_max_tokens,
            ),
            contingency=ContingencyManager(
                model_router.bind(llm_client, "contingency"),
                max_tokens=config.planning.contingency_max_tokens,
            ),
            switcher=TaskSwitcher(model_router.bind(llm_client, "switcher")),
            preserve_completed=config.planning.preserve_completed_on_redecompose,
            max_step_failures=config.planning.max_step_failures,
        )

        logger.info("All components initialized (%d evaluators)", len(evaluators))

        return ComponentBundle(
            config=config,
            model_registry=model_registry,
            llm_client=llm_client,
            model_router=model_router,
            attention=attention,
            evaluators=evaluators,
            arbitrator=arbitrator,
            planning=planning,
            responder=model_router.bind(llm_client, "responder"),
            tool_executor=CallableToolExecutor(tools),
        )

    @staticmethod
    def close(bundle: ComponentBundle) -> None:
        """Cleanly shut down all components."""
        bundle.llm_client.close()
        logger.info("All components shut down")
