"""
Ollama provider.

Streams responses from a local Ollama instance via its ``/api/chat`` endpoint.
Supports tool calling when the Ollama model advertises it.

Dependencies: ``httpx``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, AsyncIterator

import httpx

from codeh.errors import CodehError
from codeh.llm.decoders import CumulativeLineDecoder
from codeh.llm.decoders.base import StreamDecoder
from codeh.llm.framing import iter_ndjson
from codeh.llm.providers.base import HTTPChatProvider
from codeh.llm.providers.openai import function_tools
from codeh.llm.responses import cumulative_response_events
from codeh.llm.types import ChatMessage, ChatRequest, StreamEvent

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"


class OllamaProvider(HTTPChatProvider):
    """
    Provider for a local `Ollama <https://ollama.com>`_ instance.

    Parameters
    ----------
    base_url:
        Base URL of the Ollama HTTP API (e.g. ``"http://localhost:11434"``).
    model:
        Model tag, e.g. ``"llama3.1"`` or ``"mistral"``.
    timeout:
        HTTP request timeout in seconds.
    transport:
        Optional ``httpx`` transport override.
    """

    chat_path = "/api/chat"
    models_path = "/api/tags"
    default_model = "llama3.1"

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url or DEFAULT_BASE_URL,
            model=model,
            timeout=timeout,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "ollama"

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _build_body(self, request: ChatRequest, stream: bool) -> dict:
        wire_messages: list[dict] = []
        if request.system_prompt:
            wire_messages.append({"role": "system", "content": request.system_prompt})
        for msg in request.messages:
            wire_messages.append(_wire_message(msg))

        body: dict = {
            "model": self.model_for(request),
            "messages": wire_messages,
            "stream": stream,
        }

        options: dict = {}
        if request.temperature is not None:
            options["temperature"] = request.temperature
        if request.max_tokens is not None:
            options["num_predict"] = request.max_tokens
        if options:
            body["options"] = options

        if request.tools:
            body["tools"] = function_tools(request.tools)

        return body

    # ------------------------------------------------------------------
    # Response handling
    # ------------------------------------------------------------------

    def _frames(self, response: httpx.Response) -> AsyncIterator[str]:
        return iter_ndjson(response.aiter_bytes())

    def _new_decoder(self) -> StreamDecoder:
        return CumulativeLineDecoder()

    def _response_events(self, data: Any) -> tuple[list[StreamEvent], str | None]:
        return cumulative_response_events(data if isinstance(data, dict) else {})

    def _parse_models(self, data: Any) -> list[str]:
        entries = data.get("models", []) if isinstance(data, dict) else []
        return [e["name"] for e in entries if isinstance(e, dict) and e.get("name")]

    async def health_check(self) -> bool:
        """A reachable ``/api/tags`` is enough; no model has to be loaded."""
        start = time.monotonic()
        try:
            await self._request_json("GET", self.models_path)
        except CodehError as exc:
            logger.warning("ollama health check failed: %s", exc)
            return False
        logger.info(
            "ollama health check passed: duration_ms=%d",
            (time.monotonic() - start) * 1000,
        )
        return True


def _wire_message(msg: ChatMessage) -> dict:
    m: dict = {"role": msg.role, "content": msg.content}
    if msg.tool_calls:
        m["tool_calls"] = [
            {
                "function": {
                    "name": tc.name,
                    "arguments": tc.arguments,  # Ollama expects dict, not string
                },
            }
            for tc in msg.tool_calls
        ]
    return m
