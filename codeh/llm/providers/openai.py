"""
OpenAI chat-completion provider.

Speaks the ``/v1/chat/completions`` wire protocol over raw ``httpx`` so the
flat indexed-delta stream reaches ``DeltaStreamDecoder`` unmodified.  No
``openai`` SDK needed.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from codeh.errors import ConfigurationError
from codeh.llm.decoders import DeltaStreamDecoder
from codeh.llm.decoders.base import StreamDecoder
from codeh.llm.providers.base import HTTPChatProvider
from codeh.llm.responses import delta_response_events
from codeh.llm.types import ChatMessage, ChatRequest, StreamEvent, ToolSpec

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


def function_tools(tools: tuple[ToolSpec, ...] | None) -> list[dict]:
    """Tool declarations in the ``{"type": "function", ...}`` shape."""
    return [
        {
            "type": "function",
            "function": {
                "name": t.name,
                "description": t.description,
                "parameters": t.parameters,
            },
        }
        for t in tools or ()
    ]


def flat_messages(request: ChatRequest) -> list[dict]:
    """Conversation in the flat ``messages`` array shape."""
    wire: list[dict] = []
    if request.system_prompt:
        wire.append({"role": "system", "content": request.system_prompt})
    for msg in request.messages:
        wire.append(_flat_message(msg))
    return wire


def _flat_message(msg: ChatMessage) -> dict:
    m: dict = {"role": msg.role, "content": msg.content}
    if msg.tool_calls:
        m["tool_calls"] = [
            {
                "id": tc.id,
                "type": "function",
                "function": {
                    "name": tc.name,
                    "arguments": json.dumps(tc.arguments),
                },
            }
            for tc in msg.tool_calls
        ]
    if msg.tool_call_id:
        m["tool_call_id"] = msg.tool_call_id
    return m


class OpenAIProvider(HTTPChatProvider):
    """
    Provider for the OpenAI API.

    Parameters
    ----------
    api_key:
        Bearer token.  Required.
    base_url:
        Base URL of the API.  Defaults to ``https://api.openai.com/v1``.
    model:
        Default model identifier.
    timeout:
        HTTP request timeout in seconds.
    transport:
        Optional ``httpx`` transport override.
    """

    chat_path = "/chat/completions"
    models_path = "/models"
    default_model = "gpt-4o"
    requires_api_key = True

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if self.requires_api_key and not api_key:
            raise ConfigurationError(
                f"{self.name}: an API key is required",
                {"provider": self.name, "field": "api_key"},
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
        return "openai"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_body(self, request: ChatRequest, stream: bool) -> dict:
        body: dict = {
            "model": self.model_for(request),
            "messages": flat_messages(request),
            "stream": stream,
        }
        if stream:
            body["stream_options"] = {"include_usage": True}
        if request.max_tokens is not None:
            body["max_tokens"] = request.max_tokens
        if request.temperature is not None:
            body["temperature"] = request.temperature
        if request.tools:
            body["tools"] = function_tools(request.tools)
            body["tool_choice"] = "auto"
        return body

    def _new_decoder(self) -> StreamDecoder:
        return DeltaStreamDecoder()

    def _response_events(self, data: Any) -> tuple[list[StreamEvent], str | None]:
        return delta_response_events(data if isinstance(data, dict) else {})
