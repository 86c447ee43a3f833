"""Custom exception hierarchy for mindloop.

All exceptions inherit from MindloopError so callers can catch broadly
or narrowly as needed. Recoverable collaborator failures never escape the
component that issued the call; these types mark the boundary.
"""


class MindloopError(Exception):
    """Base exception for all mindloop errors."""


# ---------------------------------------------------------------------------
# LLM
# ---------------------------------------------------------------------------

class LLMError(MindloopError):
    """Failed LLM operation."""


class RateLimitError(LLMError):
    """Hit API rate limit."""


class AuthenticationError(LLMError):
    """Invalid API key or unauthorized."""


class ModelNotFoundError(LLMError):
    """Requested model not available."""


class ResponseParseError(LLMError):
    """Failed to parse LLM response."""


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

class PlanningError(MindloopError):
    """Goal/task tree or tactical execution failure."""


class NodeNotFoundError(PlanningError):
    """Referenced tree node does not exist."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' not found in goal/task tree")


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

class ToolError(MindloopError):
    """Tool execution failure."""


class UnknownToolError(ToolError):
    """Requested tool is not registered."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Unknown tool '{tool_name}'")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigError(MindloopError):
    """Invalid or missing configuration."""
