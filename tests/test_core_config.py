"""Tests for mindloop/core/config.py — YAML cascade, env overrides, prompts."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest
import yaml

from mindloop.core.config import (
    AppConfig,
    ModelRegistry,
    PromptLoader,
    load_config,
    load_model_registry,
)
from mindloop.core.exceptions import ConfigError


def _write(directory: Path, name: str, data: dict) -> None:
    (directory / name).write_text(yaml.safe_dump(data))


class TestLoadConfig:
    def test_shipped_defaults(self, monkeypatch):
        monkeypatch.delenv("MINDLOOP_MAX_ITERATIONS", raising=False)
        monkeypatch.delenv("MINDLOOP_DEBUG_DIR", raising=False)
        config = load_config()
        assert isinstance(config, AppConfig)
        assert config.loop.max_iterations == 20
        assert config.attention.continuity_window_seconds == 3600
        assert config.evaluators.enabled[0] == "interaction"

    def test_missing_directory_gives_model_defaults(self, monkeypatch):
        monkeypatch.delenv("MINDLOOP_MAX_ITERATIONS", raising=False)
        monkeypatch.delenv("MINDLOOP_DEBUG_DIR", raising=False)
        with tempfile.TemporaryDirectory() as tmp:
            config = load_config(config_dir=Path(tmp))
        assert config == AppConfig()

    def test_env_overlay_deep_merges(self, monkeypatch):
        monkeypatch.delenv("MINDLOOP_MAX_ITERATIONS", raising=False)
        with tempfile.TemporaryDirectory() as tmp:
            directory = Path(tmp)
            _write(directory, "default.yaml", {"loop": {"max_iterations": 10, "evaluator_workers": 3}})
            _write(directory, "test.yaml", {"loop": {"max_iterations": 2}})
            config = load_config(config_dir=directory, env="test")
        assert config.loop.max_iterations == 2
        assert config.loop.evaluator_workers == 3

    def test_env_var_overrides(self, monkeypatch):
        monkeypatch.setenv("MINDLOOP_MAX_ITERATIONS", "7")
        monkeypatch.setenv("MINDLOOP_DEBUG_DIR", "/tmp/mindloop-debug")
        with tempfile.TemporaryDirectory() as tmp:
            config = load_config(config_dir=Path(tmp))
        assert config.loop.max_iterations == 7
        assert config.loop.debug_dir == "/tmp/mindloop-debug"

    def test_bad_env_var(self, monkeypatch):
        monkeypatch.setenv("MINDLOOP_MAX_ITERATIONS", "lots")
        with tempfile.TemporaryDirectory() as tmp:
            with pytest.raises(ConfigError, match="MINDLOOP_MAX_ITERATIONS"):
                load_config(config_dir=Path(tmp))

    def test_non_mapping_yaml_ignored(self, monkeypatch):
        monkeypatch.delenv("MINDLOOP_MAX_ITERATIONS", raising=False)
        monkeypatch.delenv("MINDLOOP_DEBUG_DIR", raising=False)
        with tempfile.TemporaryDirectory() as tmp:
            (Path(tmp) / "default.yaml").write_text("- just\n- a list\n")
            assert load_config(config_dir=Path(tmp)) == AppConfig()


class TestModelRegistry:
    def test_shipped_registry_has_every_role(self):
        registry = load_model_registry()
        for role in ("arbitrator", "evaluator", "attention", "tactical", "contingency", "switcher", "responder"):
            assert registry.get_model(role)

    def test_unknown_role(self):
        with pytest.raises(ConfigError, match="No model configured for role 'oracle'"):
            ModelRegistry(roles={}).get_model("oracle")

    def test_fallbacks(self):
        registry = ModelRegistry(roles={"a": "x"}, fallbacks={"a": ["y"]})
        assert registry.get_fallback_models("a") == ["y"]
        assert registry.get_fallback_models("b") == []

    def test_load_from_directory(self):
        with tempfile.TemporaryDirectory() as tmp:
            _write(Path(tmp), "models.yaml", {"roles": {"arbitrator": "vendor/model"}})
            registry = load_model_registry(Path(tmp))
        assert registry.get_model("arbitrator") == "vendor/model"


class TestPromptLoader:
    def test_file_wins(self, tmp_path):
        (tmp_path / "arbitrator_system.txt").write_text("\n  Decide well.  \n")
        assert PromptLoader(tmp_path).load("arbitrator_system.txt", default="x") == "Decide well."

    def test_default_when_missing(self, tmp_path):
        assert PromptLoader(tmp_path).load("nope.txt", default="fallback") == "fallback"
