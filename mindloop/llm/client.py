"""OpenRouter LLM client for mindloop.

httpx client for an OpenAI-compatible chat completions endpoint with
OpenRouter auth headers, retry/backoff, a model fallback chain with
per-model cooldown, and tool-call extraction. ``BoundModel`` binds the
client to one role's model chain and is the reasoning collaborator every
judgment consumer talks to.
"""

from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Optional, Protocol, Sequence, Union

import httpx

from mindloop.core.config import LLMConfig
from mindloop.core.exceptions import (
    AuthenticationError,
    LLMError,
    ModelNotFoundError,
    RateLimitError,
)
from mindloop.core.models import ToolCall

logger = logging.getLogger("mindloop.llm")


class LLMMessage:
    """A single message in a conversation."""

    def __init__(
        self,
        role: str,
        content: str,
        tool_calls: Optional[list[ToolCall]] = None,
        tool_call_id: Optional[str] = None,
    ):
        self.role = role
        self.content = content
        self.tool_calls = tool_calls
        self.tool_call_id = tool_call_id

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.name,
                        "arguments": tc.arguments if isinstance(tc.arguments, str) else json.dumps(tc.arguments),
                    },
                }
                for tc in self.tool_calls
            ]
        if self.tool_call_id:
            data["tool_call_id"] = self.tool_call_id
        return data


class LLMResponse:
    """Parsed response from the LLM."""

    def __init__(
        self,
        content: str,
        model: str = "unknown",
        tokens_used: int = 0,
        raw: Optional[dict] = None,
        input_tokens: int = 0,
        output_tokens: int = 0,
        finish_reason: Optional[str] = None,
        tool_calls: Optional[list[ToolCall]] = None,
    ):
        self.content = content
        self.model = model
        self.tokens_used = tokens_used
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.finish_reason = finish_reason
        self.tool_calls = tool_calls or []
        self.raw = raw or {}


MessageLike = Union[LLMMessage, dict[str, Any]]


class ReasoningModel(Protocol):
    """The reasoning collaborator: turns prompts into structured text."""

    def call(
        self,
        messages: Sequence[MessageLike],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        response_format: Optional[dict] = None,
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> LLMResponse:
        ...


class OpenRouterClient:
    """HTTP client for OpenRouter's OpenAI-compatible API.

    The user manages model selection via config/models.yaml.
    This client never hardcodes model IDs.
    """

    def __init__(self, config: Optional[LLMConfig] = None, api_key: Optional[str] = None):
        self.config = config or LLMConfig()
        self.api_key = api_key or os.getenv("OPENROUTER_API_KEY", "")
        self.base_url = self.config.base_url.rstrip("/")
        self._client: Optional[httpx.Client] = None
        self._model_failure_counts: dict[str, int] = {}
        self._model_cooldown_until: dict[str, float] = {}

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.config.timeout_seconds),
            )
        return self._client

    def complete(
        self,
        messages: Sequence[MessageLike],
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        response_format: Optional[dict] = None,
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> LLMResponse:
        """Send a chat completion request to OpenRouter.

        Args:
            messages: Conversation messages.
            model: OpenRouter model ID.
            temperature: Sampling temperature (default from config).
            max_tokens: Max response tokens (default from config).
            response_format: Optional format constraint (e.g., {"type": "json_object"}).
            tools: Optional OpenAI-style function tool definitions.

        Returns:
            LLMResponse with content, model, token usage and any tool calls.
        """
        if not self.api_key:
            raise AuthenticationError("OPENROUTER_API_KEY not set")

        payload: dict[str, Any] = {
            "model": model,
            "messages": [_message_dict(m) for m in messages],
            "temperature": temperature if temperature is not None else self.config.default_temperature,
            "max_tokens": max_tokens or self.config.default_max_tokens,
        }
        if response_format:
            payload["response_format"] = response_format
        if tools:
            payload["tools"] = tools

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "mindloop",
        }

        return self._request_with_retry(
            payload,
            headers,
            max_retries=self.config.provider_retries + 1,
            backoff_base_seconds=self.config.provider_backoff_seconds,
        )

    def complete_with_fallback(
        self,
        messages: Sequence[MessageLike],
        models: list[str],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        response_format: Optional[dict] = None,
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> LLMResponse:
        """Try a model chain in order with retry/backoff per model.

        Each model is retried locally first; the next model in the chain
        is tried when retries are exhausted. Models that keep failing are
        put on a cooldown and skipped.
        """
        chain: list[str] = []
        for model in [*models, *self.config.fallback_models]:
            if model and model not in chain:
                chain.append(model)

        if not chain:
            raise LLMError("No models provided for completion")

        failures: list[str] = []
        cooldown_skips: list[str] = []
        for model in chain:
            remaining = self._cooldown_remaining_seconds(model)
            if remaining > 0:
                cooldown_skips.append(f"{model}: cooling down ({remaining:.1f}s)")
                logger.warning(
                    "Skipping model '%s' due to cooldown (%.1fs remaining)",
                    model,
                    remaining,
                )
                continue

            try:
                response = self.complete(
                    messages=messages,
                    model=model,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    response_format=response_format,
                    tools=tools,
                )
                self._record_model_success(model)
                return response
            except AuthenticationError:
                raise
            except Exception as e:
                failures.append(f"{model}: {e}")
                self._record_model_failure(model, error=e)
                logger.warning("Model '%s' failed, trying next fallback", model)
                continue

        details = [*cooldown_skips, *failures]
        if not details:
            details = ["No available models (all filtered)"]
        raise LLMError("All models failed.\n" + "\n".join(details))

    def _request_with_retry(
        self,
        payload: dict,
        headers: dict,
        max_retries: int = 3,
        backoff_base_seconds: float = 2.0,
    ) -> LLMResponse:
        """Execute request with exponential backoff on retryable errors."""
        last_error: Optional[Exception] = None

        for attempt in range(max_retries):
            try:
                resp = self.client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=headers,
                )

                if resp.status_code == 401:
                    raise AuthenticationError("Invalid API key")
                if resp.status_code == 404:
                    raise ModelNotFoundError(f"Model not found: {payload.get('model')}")
                if resp.status_code == 429:
                    last_error = RateLimitError("Rate limited")
                    delay = _backoff_delay(attempt, backoff_base_seconds)
                    logger.warning("Rate limited. Waiting %.1fs before retry %d", delay, attempt + 1)
                    time.sleep(delay)
                    continue
                if resp.status_code >= 500:
                    last_error = LLMError(f"Server error {resp.status_code}")
                    delay = _backoff_delay(attempt, backoff_base_seconds)
                    logger.warning("Server error %d. Waiting %.1fs", resp.status_code, delay)
                    time.sleep(delay)
                    continue

                resp.raise_for_status()
                return _parse_completion(resp.json(), payload.get("model", "unknown"))

            except (httpx.TimeoutException, httpx.ConnectError) as e:
                last_error = e
                delay = _backoff_delay(attempt, backoff_base_seconds)
                logger.warning("Network error: %s. Waiting %.1fs", e, delay)
                time.sleep(delay)
            except (AuthenticationError, ModelNotFoundError):
                raise
            except Exception as e:
                last_error = e
                if attempt == max_retries - 1:
                    break
                delay = _backoff_delay(attempt, backoff_base_seconds)
                logger.warning("Unexpected error: %s. Waiting %.1fs", e, delay)
                time.sleep(delay)

        raise LLMError(f"Request failed after {max_retries} attempts: {last_error}")

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None
        self._model_failure_counts.clear()
        self._model_cooldown_until.clear()

    def _cooldown_remaining_seconds(self, model: str) -> float:
        until = self._model_cooldown_until.get(model)
        if until is None:
            return 0.0
        remaining = until - time.monotonic()
        if remaining <= 0:
            self._model_cooldown_until.pop(model, None)
            return 0.0
        return remaining

    def _record_model_success(self, model: str) -> None:
        self._model_failure_counts.pop(model, None)
        self._model_cooldown_until.pop(model, None)

    def _record_model_failure(self, model: str, error: Exception) -> None:
        count = self._model_failure_counts.get(model, 0) + 1
        self._model_failure_counts[model] = count

        threshold = max(1, self.config.model_failure_threshold)
        if count < threshold:
            return

        cooldown = max(1, self.config.model_cooldown_seconds)
        self._model_cooldown_until[model] = time.monotonic() + cooldown
        self._model_failure_counts[model] = 0
        logger.warning(
            "Model '%s' entered cooldown for %ds after %d consecutive failures (%s)",
            model,
            cooldown,
            threshold,
            type(error).__name__,
        )


class BoundModel:
    """A ReasoningModel backed by OpenRouterClient and a fixed model chain."""

    def __init__(self, client: OpenRouterClient, models: list[str]):
        if not models:
            raise LLMError("BoundModel requires at least one model")
        self.client = client
        self.models = list(models)

    @property
    def primary_model(self) -> str:
        return self.models[0]

    def call(
        self,
        messages: Sequence[MessageLike],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        response_format: Optional[dict] = None,
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> LLMResponse:
        return self.client.complete_with_fallback(
            messages=messages,
            models=self.models,
            temperature=temperature,
            max_tokens=max_tokens,
            response_format=response_format,
            tools=tools,
        )


def _message_dict(message: MessageLike) -> dict[str, Any]:
    if isinstance(message, LLMMessage):
        return message.to_dict()
    return dict(message)


def _parse_completion(data: dict[str, Any], requested_model: str) -> LLMResponse:
    choice = data["choices"][0]
    message = choice.get("message") or {}
    content = message.get("content") or ""
    usage = data.get("usage") or {}

    tool_calls: list[ToolCall] = []
    for raw_call in message.get("tool_calls") or []:
        function = raw_call.get("function") or {}
        tool_calls.append(
            ToolCall(
                id=raw_call.get("id") or f"call-{len(tool_calls)}",
                name=function.get("name", ""),
                arguments=function.get("arguments") or {},
            )
        )

    model = data.get("model", requested_model)
    tokens = usage.get("total_tokens", 0)
    logger.debug("LLM response: model=%s tokens=%d tool_calls=%d", model, tokens, len(tool_calls))
    return LLMResponse(
        content=content,
        model=model,
        tokens_used=tokens,
        raw=data,
        input_tokens=usage.get("prompt_tokens", 0),
        output_tokens=usage.get("completion_tokens", 0),
        finish_reason=choice.get("finish_reason"),
        tool_calls=tool_calls,
    )


def _backoff_delay(attempt: int, base_seconds: float = 2.0) -> float:
    """Exponential backoff: 2s, 4s, 8s, ..."""
    return min(base_seconds * (2 ** attempt), 60)
