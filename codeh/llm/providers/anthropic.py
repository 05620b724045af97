"""
Anthropic Messages API provider.

Uses raw ``httpx`` against ``/v1/messages`` so the block-oriented event stream
reaches ``BlockStreamDecoder`` unmodified.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from codeh.errors import ConfigurationError
from codeh.llm.decoders import BlockStreamDecoder
from codeh.llm.decoders.base import StreamDecoder
from codeh.llm.providers.base import HTTPChatProvider
from codeh.llm.responses import block_response_events
from codeh.llm.types import ChatMessage, ChatRequest, StreamEvent

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.anthropic.com"
API_VERSION = "2023-06-01"

# The Messages API rejects requests without max_tokens.
_DEFAULT_MAX_TOKENS = 4096


class AnthropicProvider(HTTPChatProvider):
    """
    Provider for the Anthropic Messages API.

    Parameters
    ----------
    api_key:
        API key sent as ``x-api-key``.  Required.
    base_url:
        Base URL of the API.  Defaults to ``https://api.anthropic.com``.
    model:
        Default model identifier.
    timeout:
        HTTP request timeout in seconds.
    transport:
        Optional ``httpx`` transport override.
    """

    chat_path = "/v1/messages"
    models_path = "/v1/models"
    default_model = "claude-sonnet-4-20250514"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError(
                "anthropic: an API key is required",
                {"provider": "anthropic", "field": "api_key"},
            )
        super().__init__(
            base_url or DEFAULT_BASE_URL,
            api_key=api_key,
            model=model,
            timeout=timeout,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "anthropic"

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self._api_key or "",
            "anthropic-version": API_VERSION,
        }

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _build_body(self, request: ChatRequest, stream: bool) -> dict:
        system_parts: list[str] = []
        if request.system_prompt:
            system_parts.append(request.system_prompt)

        messages: list[dict] = []
        for msg in request.messages:
            if msg.role == "system":
                system_parts.append(msg.content)
            elif msg.role == "tool":
                _append_tool_result(messages, msg)
            else:
                messages.append(_wire_message(msg))

        body: dict = {
            "model": self.model_for(request),
            "max_tokens": request.max_tokens or _DEFAULT_MAX_TOKENS,
            "messages": messages,
            "stream": stream,
        }
        if system_parts:
            body["system"] = "\n\n".join(system_parts)
        if request.temperature is not None:
            body["temperature"] = request.temperature
        if request.tools:
            body["tools"] = [
                {
                    "name": t.name,
                    "description": t.description,
                    "input_schema": t.parameters,
                }
                for t in request.tools
            ]
        return body

    # ------------------------------------------------------------------
    # Response handling
    # ------------------------------------------------------------------

    def _new_decoder(self) -> StreamDecoder:
        return BlockStreamDecoder(provider=self.name)

    def _response_events(self, data: Any) -> tuple[list[StreamEvent], str | None]:
        return block_response_events(data if isinstance(data, dict) else {})


def _wire_message(msg: ChatMessage) -> dict:
    if not msg.tool_calls:
        return {"role": msg.role, "content": msg.content}

    blocks: list[dict] = []
    if msg.content:
        blocks.append({"type": "text", "text": msg.content})
    for tc in msg.tool_calls:
        blocks.append(
            {"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments}
        )
    return {"role": msg.role, "content": blocks}


def _append_tool_result(messages: list[dict], msg: ChatMessage) -> None:
    """
    Tool results travel as ``tool_result`` blocks inside a user turn.
    Consecutive results share one user message.
    """
    block = {
        "type": "tool_result",
        "tool_use_id": msg.tool_call_id,
        "content": msg.content,
    }
    last = messages[-1] if messages else None
    if (
        last is not None
        and last["role"] == "user"
        and isinstance(last["content"], list)
        and all(b.get("type") == "tool_result" for b in last["content"])
    ):
        last["content"].append(block)
    else:
        messages.append({"role": "user", "content": [block]})
