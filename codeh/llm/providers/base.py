"""Abstract base classes for LLM providers."""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Callable

import httpx

from codeh.errors import CodehError, ProtocolError, ProviderError, TransportError
from codeh.llm.aggregate import ResponseAggregator
from codeh.llm.decoders.base import StreamDecoder
from codeh.llm.framing import iter_sse_data
from codeh.llm.types import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ContentDelta,
    StreamEvent,
)

logger = logging.getLogger(__name__)

EventSink = Callable[[StreamEvent], None]


class ChatProvider(ABC):
    """
    A provider encapsulates access to a single LLM backend.

    Implementations must support:
      - One-shot chat completions (``chat``).
      - Streaming chat completions (``stream_chat``) that push every decoded
        ``StreamEvent`` to a sink and return the same aggregate ``chat``
        would.
      - A health check and model discovery.
    """

    @abstractmethod
    async def chat(self, request: ChatRequest) -> ChatResponse:
        ...

    @abstractmethod
    async def stream_chat(
        self,
        request: ChatRequest,
        on_event: EventSink | None = None,
    ) -> ChatResponse:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Return ``True`` when the backend answers.  Never raises."""
        ...

    @abstractmethod
    async def available_models(self) -> list[str]:
        """
        Model identifiers reported by the backend.

        Empty when the backend has no listing endpoint or the call fails.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g. ``"anthropic"``)."""
        ...


class HTTPChatProvider(ChatProvider):
    """
    Shared HTTP plumbing for the concrete adapters.

    Every call opens its own ``httpx.AsyncClient`` so concurrent calls never
    share connection state.  Subclasses describe their dialect: request body,
    headers, decoder, framing and non-streaming response shape.

    Parameters
    ----------
    base_url:
        Base URL of the API.
    api_key:
        Credential, if the backend needs one.
    model:
        Default model when a request does not name one.
    timeout:
        Per-call HTTP timeout in seconds.
    transport:
        Optional ``httpx`` transport (tests pass ``httpx.MockTransport``).
    """

    chat_path = "/chat/completions"
    models_path: str | None = None
    default_model = "default"

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._transport = transport

    # ------------------------------------------------------------------
    # Dialect hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _build_body(self, request: ChatRequest, stream: bool) -> dict:
        ...

    @abstractmethod
    def _new_decoder(self) -> StreamDecoder:
        ...

    @abstractmethod
    def _response_events(self, data: Any) -> tuple[list[StreamEvent], str | None]:
        ...

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _frames(self, response: httpx.Response) -> AsyncIterator[str]:
        return iter_sse_data(response.aiter_bytes())

    def _parse_models(self, data: Any) -> list[str]:
        entries = data.get("data", []) if isinstance(data, dict) else []
        return [e["id"] for e in entries if isinstance(e, dict) and e.get("id")]

    # ------------------------------------------------------------------
    # ChatProvider interface
    # ------------------------------------------------------------------

    @property
    def base_url(self) -> str:
        return self._base_url

    def model_for(self, request: ChatRequest) -> str:
        return request.model or self._model or self.default_model

    async def chat(self, request: ChatRequest) -> ChatResponse:
        body = self._build_body(request, stream=False)
        model = self.model_for(request)
        start = time.monotonic()
        logger.info(
            "%s chat request: model=%s messages=%d tools=%d",
            self.name,
            model,
            len(request.messages),
            len(request.tools or ()),
        )

        data = await self._request_json("POST", self.chat_path, body, start)
        try:
            events, reported_model = self._response_events(data)
        except ProtocolError as exc:
            logger.error("%s returned a malformed response: %s", self.name, exc)
            raise ProviderError(self.name, None, f"malformed response: {exc}") from exc

        aggregator = ResponseAggregator(model=model)
        aggregator.extend(events)
        response = aggregator.build(reported_model)

        logger.info(
            "%s chat completed: duration_ms=%d model=%s finish_reason=%s "
            "tool_calls=%d prompt_tokens=%d completion_tokens=%d",
            self.name,
            (time.monotonic() - start) * 1000,
            response.model,
            response.finish_reason,
            len(response.tool_calls),
            response.usage.prompt_tokens,
            response.usage.completion_tokens,
        )
        return response

    async def stream_chat(
        self,
        request: ChatRequest,
        on_event: EventSink | None = None,
    ) -> ChatResponse:
        body = self._build_body(request, stream=True)
        model = self.model_for(request)
        decoder = self._new_decoder()
        aggregator = ResponseAggregator(model=model)
        start = time.monotonic()
        first_token_at: float | None = None
        chunk_count = 0

        logger.info(
            "%s stream request: model=%s messages=%d tools=%d",
            self.name,
            model,
            len(request.messages),
            len(request.tools or ()),
        )

        def deliver(events: list[StreamEvent]) -> None:
            nonlocal first_token_at, chunk_count
            for event in events:
                if isinstance(event, ContentDelta):
                    chunk_count += 1
                    if first_token_at is None:
                        first_token_at = time.monotonic()
                        logger.info(
                            "%s first chunk received: ttft_ms=%d",
                            self.name,
                            (first_token_at - start) * 1000,
                        )
                aggregator.apply(event)
                if on_event is not None:
                    on_event(event)

        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", self.chat_path, json=body, headers=self._headers()
                ) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        raise self._status_error(response)

                    async for payload in self._frames(response):
                        deliver(decoder.decode(payload))
                        if decoder.finished:
                            break
                    deliver(decoder.close())
        except httpx.HTTPError as exc:
            elapsed = time.monotonic() - start
            logger.error(
                "%s stream failed: duration_ms=%d chunks=%d error=%s",
                self.name,
                elapsed * 1000,
                chunk_count,
                exc,
            )
            raise TransportError(self.name, _describe(exc), elapsed) from exc
        except ProviderError as exc:
            logger.error(
                "%s stream failed: duration_ms=%d chunks=%d error=%s",
                self.name,
                (time.monotonic() - start) * 1000,
                chunk_count,
                exc,
            )
            raise

        result = aggregator.build(decoder.model)
        if aggregator.assembler.errors:
            logger.warning(
                "%s tool-call assembly errors: %s", self.name, aggregator.assembler.errors
            )
        logger.info(
            "%s stream completed: duration_ms=%d ttft_ms=%s chunks=%d "
            "content_length=%d tool_calls=%d finish_reason=%s total_tokens=%d",
            self.name,
            (time.monotonic() - start) * 1000,
            int((first_token_at - start) * 1000) if first_token_at else None,
            chunk_count,
            len(result.content),
            len(result.tool_calls),
            result.finish_reason,
            result.usage.total_tokens,
        )
        return result

    async def health_check(self) -> bool:
        try:
            await self.chat(
                ChatRequest(messages=(ChatMessage.user("ping"),), max_tokens=1)
            )
        except CodehError as exc:
            logger.warning("%s health check failed: %s", self.name, exc)
            return False
        logger.info("%s health check passed", self.name)
        return True

    async def available_models(self) -> list[str]:
        if self.models_path is None:
            return []
        try:
            data = await self._request_json("GET", self.models_path)
        except CodehError as exc:
            logger.warning("%s model listing failed: %s", self.name, exc)
            return []
        models = self._parse_models(data)
        logger.info("%s models fetched: count=%d", self.name, len(models))
        return models

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _request_json(
        self,
        method: str,
        path: str,
        body: dict | None = None,
        start: float | None = None,
    ) -> Any:
        start = time.monotonic() if start is None else start
        try:
            async with self._client() as client:
                resp = await client.request(
                    method, path, json=body, headers=self._headers()
                )
        except httpx.HTTPError as exc:
            elapsed = time.monotonic() - start
            logger.error(
                "%s %s %s failed: duration_ms=%d error=%s",
                self.name,
                method,
                path,
                elapsed * 1000,
                exc,
            )
            raise TransportError(self.name, _describe(exc), elapsed) from exc

        if resp.status_code >= 400:
            raise self._status_error(resp)

        try:
            return resp.json()
        except json.JSONDecodeError:
            # Compatible servers occasionally answer with plain text.
            return resp.text

    def _status_error(self, response: httpx.Response) -> ProviderError:
        message = _error_message(response)
        logger.error(
            "%s API error: status=%d message=%s",
            self.name,
            response.status_code,
            message,
        )
        return ProviderError(self.name, response.status_code, message)


def _describe(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return f"request timed out ({type(exc).__name__})"
    return str(exc) or type(exc).__name__


def _error_message(response: httpx.Response) -> str:
    """Extract the backend's error text from a failed response."""
    text = response.text
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return text.strip()[:500] or response.reason_phrase
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        if data.get("message"):
            return str(data["message"])
    return text.strip()[:500]
