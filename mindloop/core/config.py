"""Configuration loader for mindloop.

Loads config from a YAML cascade: config/default.yaml is always loaded,
then environment-specific overrides, then environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

from mindloop.core.exceptions import ConfigError


# ---------------------------------------------------------------------------
# Config schema
# ---------------------------------------------------------------------------

class LLMConfig(BaseModel):
    provider: str = "openrouter"
    base_url: str = "https://openrouter.ai/api/v1"
    default_temperature: float = 0.3
    default_max_tokens: int = 4096
    timeout_seconds: int = 120
    provider_retries: int = 2
    provider_backoff_seconds: float = 2.0
    fallback_models: list[str] = Field(default_factory=list)
    model_failure_threshold: int = 2
    model_cooldown_seconds: int = 90


class AttentionConfig(BaseModel):
    enabled: bool = True
    focus_persistence: bool = True
    default_urgency: str = "medium"
    continuity_window_seconds: int = 3600
    urgency_max_tokens: int = 150
    orienting_max_tokens: int = 200


class LoopConfig(BaseModel):
    max_iterations: int = 20
    evaluator_workers: int = 8
    fallback_response: str = "I apologize, but I couldn't generate a response."
    debug_dir: Optional[str] = None
    diagnostics_history: int = 50


class ArbitrationConfig(BaseModel):
    temperature: float = 0.3
    max_tokens: Optional[int] = None


class EvaluatorConfig(BaseModel):
    enabled: list[str] = Field(
        default_factory=lambda: [
            "interaction",
            "memory",
            "planning",
            "attention",
            "reflection",
            "creativity",
            "criticism",
        ]
    )
    min_confidence: float = 0.1
    max_creative_solutions: int = 3


class PlanningConfig(BaseModel):
    task_timeout_seconds: int = 3600
    decomposition_max_tokens: int = 500
    contingency_max_tokens: int = 500
    preserve_completed_on_redecompose: bool = True
    max_step_failures: int = 2


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class AppConfig(BaseModel):
    llm: LLMConfig = Field(default_factory=LLMConfig)
    attention: AttentionConfig = Field(default_factory=AttentionConfig)
    loop: LoopConfig = Field(default_factory=LoopConfig)
    arbitration: ArbitrationConfig = Field(default_factory=ArbitrationConfig)
    evaluators: EvaluatorConfig = Field(default_factory=EvaluatorConfig)
    planning: PlanningConfig = Field(default_factory=PlanningConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# ---------------------------------------------------------------------------
# Model registry (models.yaml)
# ---------------------------------------------------------------------------

class ModelRegistry(BaseModel):
    """Maps component roles to OpenRouter model IDs."""
    roles: dict[str, str] = Field(default_factory=dict)
    fallbacks: dict[str, list[str]] = Field(default_factory=dict)

    def get_model(self, role: str) -> str:
        if role not in self.roles:
            raise ConfigError(f"No model configured for role '{role}'. Update config/models.yaml.")
        return self.roles[role]

    def get_fallback_models(self, role: str) -> list[str]:
        return list(self.fallbacks.get(role, []))


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def _default_config_dir() -> Path:
    return Path(__file__).parent.parent.parent / "config"


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path) as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def load_config(
    config_dir: Optional[Path] = None,
    env: Optional[str] = None,
) -> AppConfig:
    """Load application config from YAML cascade.

    Order: default.yaml -> {env}.yaml -> env vars (MINDLOOP_MAX_ITERATIONS, ...)
    """
    if config_dir is None:
        config_dir = _default_config_dir()

    merged = _load_yaml(config_dir / "default.yaml")

    if env:
        overlay = _load_yaml(config_dir / f"{env}.yaml")
        merged = _deep_merge(merged, overlay)

    max_iterations = os.getenv("MINDLOOP_MAX_ITERATIONS")
    if max_iterations:
        try:
            merged.setdefault("loop", {})["max_iterations"] = int(max_iterations)
        except ValueError as e:
            raise ConfigError(f"MINDLOOP_MAX_ITERATIONS must be an integer, got '{max_iterations}'") from e

    debug_dir = os.getenv("MINDLOOP_DEBUG_DIR")
    if debug_dir:
        merged.setdefault("loop", {})["debug_dir"] = debug_dir

    return AppConfig(**merged)


def load_model_registry(config_dir: Optional[Path] = None) -> ModelRegistry:
    """Load the model registry from models.yaml."""
    if config_dir is None:
        config_dir = _default_config_dir()

    data = _load_yaml(config_dir / "models.yaml")
    return ModelRegistry(**data)


# ---------------------------------------------------------------------------
# Prompt loader
# ---------------------------------------------------------------------------

class PromptLoader:
    """Loads prompt templates from config/prompts/ directory.

    Falls back to hardcoded defaults if the file doesn't exist, so prompts
    can be iterated on without code changes.
    """

    def __init__(self, prompts_dir: Optional[Path] = None):
        if prompts_dir is None:
            prompts_dir = _default_config_dir() / "prompts"
        self.prompts_dir = prompts_dir

    def load(self, name: str, default: str = "") -> str:
        """Load a prompt template by filename.

        Args:
            name: Filename within config/prompts/ (e.g. "arbitrator.txt").
            default: Fallback text if file doesn't exist.

        Returns:
            Prompt text (stripped of leading/trailing whitespace).
        """
        path = self.prompts_dir / name
        if path.exists():
            return path.read_text().strip()
        return default
