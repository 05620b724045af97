"""Tests for byte-stream framing (SSE and NDJSON)."""

from __future__ import annotations

from codeh.llm.framing import iter_lines, iter_ndjson, iter_sse_data


async def _chunks(*parts: bytes):
    for p in parts:
        yield p


async def _collect(agen) -> list[str]:
    return [item async for item in agen]


class TestIterLines:
    async def test_lines_split_across_chunks(self):
        lines = await _collect(iter_lines(_chunks(b"hel", b"lo\nwor", b"ld\n")))
        assert lines == ["hello", "world"]

    async def test_crlf_stripped(self):
        assert await _collect(iter_lines(_chunks(b"a\r\nb\r\n"))) == ["a", "b"]

    async def test_trailing_line_without_newline(self):
        assert await _collect(iter_lines(_chunks(b"a\nlast"))) == ["a", "last"]

    async def test_multibyte_character_split_between_chunks(self):
        data = "café\n".encode("utf-8")
        lines = await _collect(iter_lines(_chunks(data[:4], data[4:])))
        assert lines == ["café"]


class TestIterSseData:
    async def test_data_payloads_at_event_boundaries(self):
        stream = _chunks(
            b"event: message_start\ndata: {\"a\": 1}\n\n",
            b"data: {\"b\": 2}\n\n",
        )
        assert await _collect(iter_sse_data(stream)) == ['{"a": 1}', '{"b": 2}']

    async def test_comments_and_ids_skipped(self):
        stream = _chunks(b": keep-alive\nid: 7\ndata: x\n\n")
        assert await _collect(iter_sse_data(stream)) == ["x"]

    async def test_multiline_data_joined(self):
        stream = _chunks(b"data: first\ndata: second\n\n")
        assert await _collect(iter_sse_data(stream)) == ["first\nsecond"]

    async def test_final_event_without_blank_line(self):
        stream = _chunks(b"data: one\n\ndata: [DONE]")
        assert await _collect(iter_sse_data(stream)) == ["one", "[DONE]"]

    async def test_event_split_mid_payload(self):
        stream = _chunks(b'data: {"te', b'xt": "hi"}\n', b"\n")
        assert await _collect(iter_sse_data(stream)) == ['{"text": "hi"}']


class TestIterNdjson:
    async def test_blank_lines_skipped(self):
        stream = _chunks(b'{"a":1}\n\n  \n{"b":2}\n')
        assert await _collect(iter_ndjson(stream)) == ['{"a":1}', '{"b":2}']

    async def test_line_split_across_chunks(self):
        stream = _chunks(b'{"mess', b'age": 1}\n{"done"', b": true}")
        assert await _collect(iter_ndjson(stream)) == ['{"message": 1}', '{"done": true}']
