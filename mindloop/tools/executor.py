"""Tool execution collaborator.

The control loop hands tool calls to a ToolExecutor and appends whatever
comes back to the transcript. CallableToolExecutor dispatches to plain Python
callables; errors become tool output so the next iteration can see them.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional, Protocol

from mindloop.core.exceptions import ToolError, UnknownToolError
from mindloop.core.models import ToolCall, ToolResult

logger = logging.getLogger("mindloop.tools.executor")


class ToolExecutor(Protocol):
    def execute_tools(self, context: dict[str, Any], tool_calls: list[ToolCall]) -> list[ToolResult]: ...


def _parse_arguments(arguments: str | dict[str, Any]) -> dict[str, Any]:
    if isinstance(arguments, dict):
        return arguments
    if not arguments or not arguments.strip():
        return {}
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError as e:
        raise ToolError(f"Tool arguments are not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ToolError("Tool arguments must be a JSON object")
    return parsed


class CallableToolExecutor:
    """Runs registered Python callables as tools.

    Each tool receives its arguments as keyword arguments. A ``context``
    keyword is passed too when the tool was registered with
    ``wants_context=True``.
    """

    def __init__(self, tools: Optional[dict[str, Callable[..., Any]]] = None):
        self._tools: dict[str, Callable[..., Any]] = dict(tools or {})
        self._wants_context: set[str] = set()

    def register(self, name: str, func: Callable[..., Any], wants_context: bool = False) -> None:
        self._tools[name] = func
        if wants_context:
            self._wants_context.add(name)

    @property
    def tool_names(self) -> list[str]:
        return sorted(self._tools)

    def execute_tools(self, context: dict[str, Any], tool_calls: list[ToolCall]) -> list[ToolResult]:
        results: list[ToolResult] = []
        for call in tool_calls:
            is_error = True
            try:
                content = self._run(call, context)
                is_error = False
            except ToolError as e:
                logger.warning("Tool '%s' failed: %s", call.name, e)
                content = f"Error: {e}"
            except Exception as e:
                logger.warning("Tool '%s' raised: %s", call.name, e, exc_info=True)
                content = f"Error: {type(e).__name__}: {e}"
            results.append(ToolResult(tool_call_id=call.id, content=content, is_error=is_error))
        return results

    def _run(self, call: ToolCall, context: dict[str, Any]) -> str:
        func = self._tools.get(call.name)
        if func is None:
            raise UnknownToolError(call.name)
        kwargs = _parse_arguments(call.arguments)
        if call.name in self._wants_context:
            kwargs["context"] = context
        output = func(**kwargs)
        if isinstance(output, str):
            return output
        return json.dumps(output, default=str)
