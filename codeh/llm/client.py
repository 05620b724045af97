"""
Chat client -- the single entry point the rest of codeh uses to talk to an LLM.

The client:

  1. Resolves an ``LLMConfig`` to exactly one ``ChatProvider`` adapter.
  2. Fills request defaults (model, ``max_tokens``, ``temperature``).
  3. Delegates to the adapter; streaming and one-shot calls return the same
     aggregate ``ChatResponse``.
"""

from __future__ import annotations

import dataclasses
import logging

import httpx

from codeh.config import PROVIDERS, LLMConfig
from codeh.errors import ConfigurationError
from codeh.llm.providers.anthropic import AnthropicProvider
from codeh.llm.providers.base import ChatProvider, EventSink
from codeh.llm.providers.generic import GenericProvider
from codeh.llm.providers.ollama import OllamaProvider
from codeh.llm.providers.openai import OpenAIProvider
from codeh.llm.types import ChatRequest, ChatResponse

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.7


def create_provider(
    settings: LLMConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ChatProvider:
    """
    Build the adapter named by ``settings.provider``.

    Raises ``ConfigurationError`` for an unknown provider, a missing
    credential (anthropic, openai) or a missing base URL (generic).
    """
    name = settings.provider
    common = {
        "model": settings.model or None,
        "timeout": settings.timeout_seconds,
        "transport": transport,
    }
    base_url = settings.base_url or None

    if name == "anthropic":
        return AnthropicProvider(
            api_key=settings.resolve_api_key(), base_url=base_url, **common
        )
    if name == "openai":
        return OpenAIProvider(
            api_key=settings.resolve_api_key(), base_url=base_url, **common
        )
    if name == "ollama":
        return OllamaProvider(base_url=base_url, **common)
    if name == "generic":
        return GenericProvider(
            base_url=base_url, api_key=settings.resolve_api_key(), **common
        )
    raise ConfigurationError(
        f"Unknown provider {name!r}. Supported: {', '.join(PROVIDERS)}",
        {"field": "llm.provider", "value": name},
    )


class ChatClient:
    """
    Facade over one configured provider.

    Parameters
    ----------
    settings:
        Provider settings.  Ignored when *provider* is given, except for the
        request defaults.
    provider:
        A ready-made adapter (tests pass scripted providers here).
    transport:
        Optional ``httpx`` transport handed to the adapter.
    """

    def __init__(
        self,
        settings: LLMConfig | None = None,
        *,
        provider: ChatProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or LLMConfig()
        self._provider = provider or create_provider(self._settings, transport)
        logger.info(
            "Chat client ready: provider=%s model=%s",
            self._provider.name,
            self._settings.model or "(provider default)",
        )

    # ------------------------------------------------------------------
    # Provider info
    # ------------------------------------------------------------------

    @property
    def provider(self) -> ChatProvider:
        return self._provider

    @property
    def provider_name(self) -> str:
        return self._provider.name

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    def with_defaults(self, request: ChatRequest) -> ChatRequest:
        """Return *request* with model, max_tokens and temperature filled."""
        s = self._settings
        return dataclasses.replace(
            request,
            model=request.model or s.model or None,
            max_tokens=request.max_tokens or s.max_tokens or DEFAULT_MAX_TOKENS,
            temperature=(
                request.temperature
                if request.temperature is not None
                else (s.temperature if s.temperature is not None else DEFAULT_TEMPERATURE)
            ),
        )

    async def chat(self, request: ChatRequest) -> ChatResponse:
        return await self._provider.chat(self.with_defaults(request))

    async def stream_chat(
        self,
        request: ChatRequest,
        on_event: EventSink | None = None,
    ) -> ChatResponse:
        return await self._provider.stream_chat(self.with_defaults(request), on_event)

    async def health_check(self) -> bool:
        return await self._provider.health_check()

    async def available_models(self) -> list[str]:
        return await self._provider.available_models()
