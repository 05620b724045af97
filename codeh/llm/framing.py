"""
Framing helpers that turn a raw HTTP byte stream into decoder payloads.

Two framings are used by the supported backends:

  - Server-Sent Events (Anthropic, OpenAI, compatible servers): each event
    carries its JSON in one or more ``data:`` lines.
  - Newline-delimited JSON (Ollama): one complete JSON object per line.
"""

from __future__ import annotations

import codecs
from typing import AsyncIterator


async def iter_lines(byte_chunks: AsyncIterator[bytes]) -> AsyncIterator[str]:
    """Yield decoded lines (without terminators) from a byte stream."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    async for raw_bytes in byte_chunks:
        buffer += decoder.decode(raw_bytes)

        while "\n" in buffer:
            line, buffer = buffer.split("\n", 1)
            yield line.rstrip("\r")

    buffer += decoder.decode(b"", final=True)
    if buffer:
        yield buffer.rstrip("\r")


async def iter_sse_data(byte_chunks: AsyncIterator[bytes]) -> AsyncIterator[str]:
    """
    Yield the ``data`` payload of each Server-Sent Event.

    Each SSE event has the form::

        event: name
        data: {json}\\n\\n

    ``event:``, ``id:`` and comment lines are skipped because every payload we
    consume repeats its type inside the JSON.  Multi-line ``data`` fields are
    joined with newlines per the SSE specification.
    """
    data_lines: list[str] = []
    async for line in iter_lines(byte_chunks):
        if not line:
            # Empty line -- SSE event boundary.
            if data_lines:
                yield "\n".join(data_lines)
                data_lines = []
            continue

        if line.startswith("data:"):
            data_lines.append(line[len("data:"):].strip())

    if data_lines:
        yield "\n".join(data_lines)


async def iter_ndjson(byte_chunks: AsyncIterator[bytes]) -> AsyncIterator[str]:
    """Yield each non-blank line of a newline-delimited JSON stream."""
    async for line in iter_lines(byte_chunks):
        line = line.strip()
        if line:
            yield line
