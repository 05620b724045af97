"""
Provider for arbitrary OpenAI-compatible endpoints (LiteLLM, LM Studio, vLLM,
LocalAI, ...).

The request side is the OpenAI one.  The response side is tolerant: streams go
through ``GenericStreamDecoder`` and one-shot bodies are tried against the
known shapes before falling back to the raw JSON text.
"""

from __future__ import annotations

from typing import Any

import httpx

from codeh.errors import ConfigurationError
from codeh.llm.decoders import GenericStreamDecoder
from codeh.llm.decoders.base import StreamDecoder
from codeh.llm.providers.openai import OpenAIProvider
from codeh.llm.responses import generic_response_events
from codeh.llm.types import StreamEvent


class GenericProvider(OpenAIProvider):
    """
    Parameters
    ----------
    base_url:
        Base URL of the endpoint.  Required.
    api_key:
        Optional bearer token.
    model:
        Default model identifier.
    timeout:
        HTTP request timeout in seconds.
    transport:
        Optional ``httpx`` transport override.
    """

    default_model = "default"
    requires_api_key = False

    def __init__(
        self,
        base_url: str | None,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ConfigurationError(
                "generic: a base URL is required",
                {"provider": "generic", "field": "base_url"},
            )
        super().__init__(
            api_key=api_key,
            base_url=base_url,
            model=model,
            timeout=timeout,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "generic"

    def _new_decoder(self) -> StreamDecoder:
        return GenericStreamDecoder()

    def _response_events(self, data: Any) -> tuple[list[StreamEvent], str | None]:
        return generic_response_events(data)
