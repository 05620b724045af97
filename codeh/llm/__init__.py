"""LLM subsystem -- providers, stream decoding, and tool-call assembly."""

from codeh.llm.types import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ContentDelta,
    Finished,
    FinishReason,
    StreamEvent,
    ToolCall,
    ToolCallArgumentDelta,
    ToolCallCompleted,
    ToolCallStarted,
    ToolSpec,
    Usage,
    UsageUpdate,
)
from codeh.llm.client import ChatClient, create_provider
from codeh.llm.tool_call_assembler import ToolCallAssembler

__all__ = [
    "ChatClient",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "ContentDelta",
    "Finished",
    "FinishReason",
    "StreamEvent",
    "ToolCall",
    "ToolCallArgumentDelta",
    "ToolCallAssembler",
    "ToolCallCompleted",
    "ToolCallStarted",
    "ToolSpec",
    "Usage",
    "UsageUpdate",
    "create_provider",
]
