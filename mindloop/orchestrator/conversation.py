"""Conversation log collaborator and its in-memory default."""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Optional, Protocol

from mindloop.core.models import ConversationMessage, ToolCall


class ConversationLog(Protocol):
    """Append-only transcript store keyed by conversation id."""

    def add_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        tool_calls: Optional[list[ToolCall]] = None,
        tool_call_id: Optional[str] = None,
        run_id: Optional[str] = None,
    ) -> ConversationMessage: ...

    def get_conversation(self, conversation_id: str) -> list[ConversationMessage]: ...


class InMemoryConversationLog:
    """Process-local transcript store."""

    def __init__(self) -> None:
        self._conversations: dict[str, list[ConversationMessage]] = defaultdict(list)
        self._lock = threading.Lock()

    def add_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        tool_calls: Optional[list[ToolCall]] = None,
        tool_call_id: Optional[str] = None,
        run_id: Optional[str] = None,
    ) -> ConversationMessage:
        message = ConversationMessage(
            role=role,
            content=content,
            tool_calls=tool_calls,
            tool_call_id=tool_call_id,
            run_id=run_id,
        )
        with self._lock:
            self._conversations[conversation_id].append(message)
        return message

    def get_conversation(self, conversation_id: str) -> list[ConversationMessage]:
        with self._lock:
            return list(self._conversations.get(conversation_id, []))
