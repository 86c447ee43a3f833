"""Tests for mindloop/planning/contingency.py — fallback task creation."""

from __future__ import annotations

from mindloop.core.models import GoalNode, TaskNode, TaskStatus, UrgencyLevel
from mindloop.planning.contingency import ContingencyManager
from tests.conftest import constant_model, make_model


def _failed_task() -> TaskNode:
    return TaskNode(
        id="t1",
        title="Download dataset",
        description="Fetch the CSV",
        parent_id="g1",
        order=2,
        urgency=UrgencyLevel.HIGH,
        source="run-1",
        task_status=TaskStatus.FAILED,
        metadata={"steps": [{"title": "x"}], "owner": "me"},
    )


class TestContingencyManager:
    def test_fallback_created(self):
        model = constant_model({
            "shouldCreateFallback": True,
            "fallbackTitle": "Use the mirror",
            "fallbackDescription": "Download from the mirror site",
            "urgency": "critical",
            "priority": 0.9,
            "reasoning": "mirror is reliable",
        })
        fallback = ContingencyManager(model).handle_failure(_failed_task(), "HTTP 503")

        assert fallback is not None
        assert fallback.id.startswith("t1-fallback-")
        assert fallback.title == "Use the mirror"
        assert fallback.description == "Download from the mirror site"
        assert fallback.task_status == TaskStatus.PENDING
        assert fallback.urgency == UrgencyLevel.CRITICAL
        assert fallback.priority == 0.9
        assert fallback.parent_id == "g1"
        assert fallback.order == 2
        assert fallback.source == "run-1"

    def test_fallback_metadata(self):
        model = constant_model({"shouldCreateFallback": True})
        fallback = ContingencyManager(model).handle_failure(_failed_task(), "HTTP 503")

        assert "steps" not in fallback.metadata
        assert fallback.metadata["owner"] == "me"
        assert fallback.metadata["isFallback"] is True
        assert fallback.metadata["originalTaskId"] == "t1"
        assert fallback.metadata["originalError"] == "HTTP 503"

    def test_defaults_when_fields_missing(self):
        model = constant_model({"shouldCreateFallback": True, "urgency": "whenever", "priority": "high"})
        fallback = ContingencyManager(model).handle_failure(_failed_task(), "HTTP 503")

        assert fallback.title == "Fallback: Download dataset"
        assert fallback.description == "Fallback for: Download dataset. Original error: HTTP 503"
        assert fallback.urgency == UrgencyLevel.HIGH
        assert fallback.priority == 0.5

    def test_priority_clamped(self):
        model = constant_model({"shouldCreateFallback": True, "priority": 7})
        fallback = ContingencyManager(model).handle_failure(_failed_task(), "e")
        assert fallback.priority == 1.0

    def test_declined(self):
        model = constant_model({"shouldCreateFallback": False, "reasoning": "not worth it"})
        manager = ContingencyManager(model)
        decision = manager.decide(_failed_task(), "e")
        assert decision.should_create_fallback is False
        assert decision.reasoning == "not worth it"
        assert manager.handle_failure(_failed_task(), "e") is None

    def test_model_failure_means_no_fallback(self):
        manager = ContingencyManager(make_model(RuntimeError("down")))
        assert manager.handle_failure(_failed_task(), "e") is None

    def test_goal_never_gets_fallback(self):
        model = constant_model({"shouldCreateFallback": True})
        assert ContingencyManager(model).handle_failure(GoalNode(title="g"), "e") is None
        model.call.assert_not_called()

    def test_prompt_mentions_error_and_progress(self):
        model = constant_model({"shouldCreateFallback": False})
        task = _failed_task()
        task.progress = 25
        ContingencyManager(model).decide(task, "disk full")
        prompt = model.call.call_args[0][0][1].content
        assert "Error: disk full" in prompt
        assert "Progress: 25%" in prompt
