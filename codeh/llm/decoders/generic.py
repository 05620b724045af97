"""
Best-effort decoder for OpenAI-compatible servers (LiteLLM, LM Studio, vLLM,
Gemini's compatibility endpoint, ...).

Streams are assumed to have the flat indexed-delta shape, but each field is
read defensively: missing ``choices``, a ``message`` object where ``delta``
was expected, tool-call deltas without an ``index`` and argument objects
instead of strings are all tolerated.  Tool-call entries that are not objects
are dropped rather than failing the whole chunk.
"""

from __future__ import annotations

import json

from codeh.llm.decoders.delta import DeltaStreamDecoder


class GenericStreamDecoder(DeltaStreamDecoder):
    dialect = "generic"

    def _choice(self, data: dict) -> dict | None:
        choices = data.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            return choices[0]
        if isinstance(choices, dict):
            return choices
        return None

    def _delta(self, choice: dict) -> dict:
        delta = choice.get("delta")
        if isinstance(delta, dict):
            return delta
        message = choice.get("message")
        if isinstance(message, dict):
            return message
        return {}

    def _tool_deltas(self, delta: dict) -> list[dict]:
        raw = delta.get("tool_calls")
        if not isinstance(raw, list):
            return []
        return [tc for tc in raw if isinstance(tc, dict)]

    def _function(self, raw_tc: dict) -> dict:
        func = raw_tc.get("function")
        if isinstance(func, dict):
            return func
        if isinstance(func, str):
            # Some servers flatten the function object to its name.
            return {"name": func, "arguments": raw_tc.get("arguments")}
        return {"name": raw_tc.get("name"), "arguments": raw_tc.get("arguments")}

    def _tool_index(self, raw_tc: dict, position: int) -> int:
        index = raw_tc.get("index")
        return index if isinstance(index, int) else position

    def _arguments_text(self, raw: object) -> str:
        if raw is None:
            return ""
        if isinstance(raw, str):
            return raw
        return json.dumps(raw)
