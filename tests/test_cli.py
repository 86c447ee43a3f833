"""Tests for mindloop/cli.py — click commands via CliRunner."""

from __future__ import annotations

import json
import logging

import pytest
import yaml
from click.testing import CliRunner

from mindloop.cli import _setup_logging, cli
from mindloop.llm.client import LLMResponse, OpenRouterClient
from tests.conftest import write_config


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    monkeypatch.delenv("MINDLOOP_MAX_ITERATIONS", raising=False)
    monkeypatch.delenv("MINDLOOP_DEBUG_DIR", raising=False)
    return write_config(tmp_path, {
        "evaluators": {"enabled": ["interaction"]},
        "attention": {"enabled": False},
        "loop": {"max_iterations": 4},
    })


@pytest.fixture
def stub_llm(monkeypatch):
    def fake_complete(self, messages, models, **kwargs):
        if models[0] == "t/evaluator":
            return LLMResponse(content='{"confidence": 0.9, "payload": {"message": "Bonjour!"}}')
        if models[0] == "t/arbitrator":
            return LLMResponse(
                content='{"action": ["respond", "termination"], "payload": [{"message": "Bonjour!"}, {}]}'
            )
        return LLMResponse(content="{}")

    monkeypatch.setattr(OpenRouterClient, "complete_with_fallback", fake_complete)


class TestShowConfig:
    def test_prints_yaml(self, config_dir):
        result = CliRunner().invoke(cli, ["--config-dir", str(config_dir), "show-config"])
        assert result.exit_code == 0, result.output
        data = yaml.safe_load(result.output)
        assert data["loop"]["max_iterations"] == 4
        assert "models" not in data

    def test_with_models(self, config_dir):
        result = CliRunner().invoke(cli, ["--config-dir", str(config_dir), "show-config", "--models"])
        assert result.exit_code == 0, result.output
        assert yaml.safe_load(result.output)["models"]["roles"]["arbitrator"] == "t/arbitrator"


class TestRun:
    def test_prints_reply(self, config_dir, stub_llm):
        result = CliRunner().invoke(cli, ["--config-dir", str(config_dir), "run", "hello", "--api-key", "k"])
        assert result.exit_code == 0, result.output
        assert result.output.strip().endswith("Bonjour!")

    def test_json_output(self, config_dir, stub_llm, tmp_path):
        memories = tmp_path / "memories.txt"
        memories.write_text("- speaks French\n")
        result = CliRunner().invoke(cli, [
            "--config-dir", str(config_dir),
            "run", "hello",
            "--api-key", "k",
            "--conversation-id", "c-42",
            "--memories", str(memories),
            "--json",
        ])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output[result.output.index("{\n"):])
        assert data["response"] == "Bonjour!"
        assert data["stop_reason"] == "terminated"
        assert data["iterations"] == 1

    def test_diagnostics_written(self, config_dir, stub_llm, tmp_path):
        out_dir = tmp_path / "diag"
        out_dir.mkdir()
        result = CliRunner().invoke(cli, [
            "--config-dir", str(config_dir),
            "run", "hello",
            "--api-key", "k",
            "--diagnostics", str(out_dir),
        ])
        assert result.exit_code == 0, result.output
        assert result.output.strip().endswith("Bonjour!")
        [written] = list(out_dir.glob("diagnostics_*.json"))
        data = json.loads(written.read_text())
        assert data["total_runs"] == 1
        assert data["runs"][0]["outcome"] == "terminated"
        assert data["runs"][0]["iterations"][0]["decision"]["action"] == ["respond", "termination"]

    def test_bad_config_is_a_click_error(self, tmp_path):
        write_config(tmp_path, roles=["arbitrator"])
        result = CliRunner().invoke(cli, ["--config-dir", str(tmp_path), "run", "hello", "--api-key", "k"])
        assert result.exit_code != 0
        assert "No model configured" in result.output


class TestSetupLogging:
    def test_verbose_does_not_raise(self, config_dir):
        _setup_logging(verbose=True, config_dir=config_dir)
        assert logging.getLogger("mindloop").getEffectiveLevel() <= logging.WARNING
