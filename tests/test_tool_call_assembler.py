"""Tests for codeh.llm.tool_call_assembler.ToolCallAssembler."""

from __future__ import annotations

import itertools

import pytest

from codeh.llm.tool_call_assembler import ToolCallAssembler
from codeh.llm.types import (
    ContentDelta,
    ToolCallArgumentDelta as Args,
    ToolCallCompleted as Done,
    ToolCallStarted as Start,
)


class TestSingleToolCall:
    """Assemble a single tool call from incremental events."""

    def test_basic_assembly(self):
        asm = ToolCallAssembler()

        assert asm.feed(Start(index=0, id="call_1", name="read_")) is None
        assert asm.feed(Start(index=0, name="file")) is None
        assert asm.feed(Args(index=0, fragment='{"path": ')) is None
        assert asm.feed(Args(index=0, fragment='"/etc/hosts"}')) is None

        tc = asm.feed(Done(index=0))
        assert tc is not None
        assert tc.id == "call_1"
        assert tc.name == "read_file"
        assert tc.arguments == {"path": "/etc/hosts"}

    def test_block_fragments_reassemble(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=1, id="toolu_1", name="search"))
        asm.feed(Args(index=1, fragment='{"q":"f'))
        asm.feed(Args(index=1, fragment='oo"}'))
        tc = asm.feed(Done(index=1))
        assert tc.name == "search"
        assert tc.arguments == {"q": "foo"}

    def test_repeated_start_keeps_first_id(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=0, id="first", name="a"))
        asm.feed(Start(index=0, id="second", name="b"))
        tc = asm.feed(Done(index=0))
        assert tc.id == "first"
        assert tc.name == "ab"

    def test_later_start_fills_missing_id(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=0, name="ping"))
        asm.feed(Start(index=0, id="late"))
        assert asm.feed(Done(index=0)).id == "late"

    def test_non_tool_events_ignored(self):
        asm = ToolCallAssembler()
        assert asm.feed(ContentDelta(text="hello")) is None
        assert asm.tool_calls == []

    def test_no_errors_on_success(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=0, id="ok", name="test"))
        asm.feed(Args(index=0, fragment="{}"))
        asm.feed(Done(index=0))
        assert asm.errors == []

    def test_second_completion_is_ignored(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=0, id="x", name="t"))
        assert asm.feed(Done(index=0)) is not None
        assert asm.feed(Done(index=0)) is None
        assert len(asm.tool_calls) == 1


class TestOrdering:
    """Finished calls are reported in first-seen index order."""

    def test_completion_order_does_not_matter(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=0, id="a", name="first"))
        asm.feed(Start(index=1, id="b", name="second"))
        asm.feed(Args(index=1, fragment="{}"))
        asm.feed(Done(index=1))
        asm.feed(Args(index=0, fragment="{}"))
        asm.feed(Done(index=0))
        assert [tc.name for tc in asm.tool_calls] == ["first", "second"]

    def test_first_seen_not_numeric_order(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=3, id="c", name="three"))
        asm.feed(Start(index=1, id="a", name="one"))
        asm.flush()
        assert [tc.name for tc in asm.tool_calls] == ["three", "one"]

    @pytest.mark.parametrize(
        "completion_order", list(itertools.permutations(range(3)))
    )
    def test_any_completion_permutation(self, completion_order):
        asm = ToolCallAssembler()
        for idx in range(3):
            asm.feed(Start(index=idx, id=f"call_{idx}", name=f"tool_{idx}"))
        for idx in reversed(range(3)):
            asm.feed(Args(index=idx, fragment=f'{{"n": {idx}}}'))
        for idx in completion_order:
            asm.feed(Done(index=idx))
        assert [tc.name for tc in asm.tool_calls] == ["tool_0", "tool_1", "tool_2"]
        assert [tc.arguments["n"] for tc in asm.tool_calls] == [0, 1, 2]


class TestMalformedJSON:
    """Malformed argument text degrades to an empty object."""

    def test_invalid_json_on_done(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=0, id="bad", name="broken"))
        asm.feed(Args(index=0, fragment='{"key": INVALID'))
        tc = asm.feed(Done(index=0))
        assert tc.arguments == {}
        assert len(asm.errors) == 1
        assert "parse_failed" in asm.errors[0]

    def test_partial_json_on_done(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=0, id="p", name="partial"))
        asm.feed(Args(index=0, fragment='{"a": 1'))
        assert asm.feed(Done(index=0)).arguments == {}

    def test_non_object_json_becomes_empty(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=0, id="l", name="listy"))
        asm.feed(Args(index=0, fragment="[1, 2]"))
        assert asm.feed(Done(index=0)).arguments == {}
        assert "not_object" in asm.errors[0]

    def test_malformed_does_not_block_valid_calls(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=0, id="bad", name="broken"))
        asm.feed(Args(index=0, fragment="{nope"))
        asm.feed(Start(index=1, id="good", name="fine"))
        asm.feed(Args(index=1, fragment='{"x": 1}'))
        asm.flush()
        assert [tc.arguments for tc in asm.tool_calls] == [{}, {"x": 1}]


class TestFlush:
    def test_flush_completes_open_buffers(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=0, id="a", name="one"))
        asm.feed(Args(index=0, fragment='{"k": "v"}'))
        flushed = asm.flush()
        assert len(flushed) == 1
        assert flushed[0].arguments == {"k": "v"}
        assert asm.pending_indices == []

    def test_flush_skips_already_finished(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=0, id="a", name="one"))
        asm.feed(Done(index=0))
        asm.feed(Start(index=1, id="b", name="two"))
        assert [tc.name for tc in asm.flush()] == ["two"]

    def test_flush_on_empty_assembler(self):
        assert ToolCallAssembler().flush() == []


class TestEmptyArgs:
    def test_no_args_delta(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=0, id="e", name="noargs"))
        assert asm.feed(Done(index=0)).arguments == {}
        assert asm.errors == []

    def test_whitespace_args(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=0, id="w", name="blank"))
        asm.feed(Args(index=0, fragment="   "))
        assert asm.feed(Done(index=0)).arguments == {}
        assert asm.errors == []


class TestReset:
    def test_reset_clears_buffers_and_errors(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=0, id="x", name="t"))
        asm.feed(Args(index=0, fragment="{bad"))
        asm.feed(Done(index=0))
        asm.reset()
        assert asm.errors == []
        assert asm.tool_calls == []
        assert asm.pending_indices == []


class TestIdAndName:
    def test_missing_id_uses_call_index(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=4, name="anon"))
        assert asm.feed(Done(index=4)).id == "call_4"

    def test_whitespace_in_name(self):
        asm = ToolCallAssembler()
        asm.feed(Start(index=0, id="n", name="  spaced  "))
        assert asm.feed(Done(index=0)).name == "spaced"
