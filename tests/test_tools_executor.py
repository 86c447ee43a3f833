"""Tests for mindloop/tools/executor.py — callable tool dispatch."""

from __future__ import annotations

import json

from mindloop.core.models import ToolCall
from mindloop.tools.executor import CallableToolExecutor


def add(a: int, b: int) -> int:
    return a + b


class TestCallableToolExecutor:
    def test_dict_arguments(self):
        executor = CallableToolExecutor({"add": add})
        [result] = executor.execute_tools({}, [ToolCall(id="c1", name="add", arguments={"a": 2, "b": 3})])
        assert result.tool_call_id == "c1"
        assert result.content == "5"
        assert result.is_error is False

    def test_json_string_arguments(self):
        executor = CallableToolExecutor({"add": add})
        [result] = executor.execute_tools({}, [ToolCall(name="add", arguments='{"a": 1, "b": 1}')])
        assert result.content == "2"

    def test_empty_string_arguments(self):
        executor = CallableToolExecutor({"ping": lambda: "pong"})
        [result] = executor.execute_tools({}, [ToolCall(name="ping", arguments="")])
        assert result.content == "pong"

    def test_structured_output_is_json(self):
        executor = CallableToolExecutor({"lookup": lambda: {"hits": [1, 2]}})
        [result] = executor.execute_tools({}, [ToolCall(name="lookup")])
        assert json.loads(result.content) == {"hits": [1, 2]}

    def test_unknown_tool(self):
        [result] = CallableToolExecutor().execute_tools({}, [ToolCall(name="missing")])
        assert result.is_error is True
        assert result.content == "Error: Unknown tool 'missing'"

    def test_bad_arguments(self):
        executor = CallableToolExecutor({"add": add})
        [result] = executor.execute_tools({}, [ToolCall(name="add", arguments="{not json")])
        assert result.is_error is True
        assert result.content.startswith("Error: Tool arguments are not valid JSON")

    def test_non_object_arguments(self):
        executor = CallableToolExecutor({"add": add})
        [result] = executor.execute_tools({}, [ToolCall(name="add", arguments="[1, 2]")])
        assert result.content == "Error: Tool arguments must be a JSON object"

    def test_tool_exception(self):
        def broken():
            raise ValueError("bad input")

        executor = CallableToolExecutor({"broken": broken})
        [result] = executor.execute_tools({}, [ToolCall(name="broken")])
        assert result.is_error is True
        assert result.content == "Error: ValueError: bad input"

    def test_one_failure_does_not_stop_the_rest(self):
        executor = CallableToolExecutor({"add": add})
        results = executor.execute_tools({}, [
            ToolCall(name="missing"),
            ToolCall(name="add", arguments={"a": 1, "b": 2}),
        ])
        assert [r.is_error for r in results] == [True, False]

    def test_context_passed_when_requested(self):
        executor = CallableToolExecutor()
        executor.register("whoami", lambda context: context["run_id"], wants_context=True)
        [result] = executor.execute_tools({"run_id": "r1"}, [ToolCall(name="whoami")])
        assert result.content == "r1"

    def test_tool_names(self):
        executor = CallableToolExecutor({"b": add})
        executor.register("a", add)
        assert executor.tool_names == ["a", "b"]
