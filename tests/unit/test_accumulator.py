"""
tests/unit/test_accumulator.py — Stream Segment Accumulator Tests

Covers:
  - Content deltas coalesce into one segment
  - thinking_start forces a new thinking segment
  - Tool calls open their own segment and complete by id
  - Unmatched tool results fall back to the single running call
  - Splitting a delta anywhere yields the same segments
  - finalize() interrupts running calls, drops blank thinking, is idempotent
  - Tool call status never moves backwards
"""

from __future__ import annotations

import pytest

from paidmedia.agent.events import (
    ContentDelta,
    Metadata,
    ThinkingDelta,
    ThinkingStart,
    ToolCallStart,
    ToolResult,
    TurnDone,
)
from paidmedia.stream.accumulator import (
    ReduceState,
    StreamAccumulator,
    finalize_segments,
    reduce_segments,
)
from paidmedia.stream.segments import (
    ContentSegment,
    SegmentType,
    ThinkingSegment,
    ToolCall,
    ToolCallSegment,
    ToolCallStatus,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _fold(events) -> tuple:
    state = ReduceState()
    for event in events:
        state = reduce_segments(state, event)
    return state.segments


# ─────────────────────────────────────────────────────────────────────────────
# Coalescing
# ─────────────────────────────────────────────────────────────────────────────

class TestCoalescing:
    def test_content_deltas_merge(self):
        acc = StreamAccumulator()
        acc.apply(ContentDelta("Hello"))
        acc.apply(ContentDelta(" world"))
        acc.apply(TurnDone())

        message = acc.finalize()
        assert message is not None
        assert message.segments == (ContentSegment("Hello world"),)
        assert message.content == "Hello world"
        assert message.tool_calls == []

    def test_thinking_start_splits_thinking(self):
        segments = _fold([
            ThinkingStart(),
            ThinkingDelta("step1"),
            ToolCallStart(name="Skill", tool_use_id="tu_1"),
            ThinkingStart(),
            ThinkingDelta("step2"),
            TurnDone(),
        ])
        types = [s.type for s in segments]
        assert types == [SegmentType.THINKING, SegmentType.TOOL_CALL, SegmentType.THINKING]
        assert segments[0].text == "step1"
        assert segments[2].text == "step2"

    def test_back_to_back_thinking_blocks_stay_separate(self):
        segments = _fold([
            ThinkingStart(), ThinkingDelta("a"),
            ThinkingStart(), ThinkingDelta("b"),
        ])
        assert segments == (ThinkingSegment("a"), ThinkingSegment("b"))

    def test_thinking_without_start_appends(self):
        segments = _fold([ThinkingDelta("a"), ThinkingDelta("b")])
        assert segments == (ThinkingSegment("ab"),)

    def test_content_after_thinking_opens_new_segment(self):
        segments = _fold([ThinkingDelta("plan"), ContentDelta("answer")])
        assert segments == (ThinkingSegment("plan"), ContentSegment("answer"))

    def test_pending_boundary_cleared_by_next_delta(self):
        state = reduce_segments(ReduceState(), ThinkingStart())
        assert state.pending_boundary is True
        state = reduce_segments(state, ThinkingDelta("x"))
        assert state.pending_boundary is False

    def test_thinking_start_does_not_split_content(self):
        state = ReduceState()
        for event in (ContentDelta("Hello"), ThinkingStart(), ContentDelta(" world")):
            state = reduce_segments(state, event)
        assert state.segments == (ContentSegment("Hello world"),)
        assert state.pending_boundary is True

    def test_boundary_survives_content_until_thinking(self):
        segments = _fold([
            ThinkingDelta("a"),
            ThinkingStart(),
            ContentDelta("text"),
            ToolCallStart(name="Read", tool_use_id="t"),
            ThinkingDelta("b"),
        ])
        assert [s.type for s in segments] == [
            SegmentType.THINKING, SegmentType.CONTENT, SegmentType.TOOL_CALL, SegmentType.THINKING,
        ]

    def test_framing_events_are_ignored(self):
        state = ReduceState((ContentSegment("hi"),))
        assert reduce_segments(state, Metadata(session_id="s")) is state
        assert reduce_segments(state, TurnDone()) is state

    def test_reducer_does_not_mutate_input(self):
        before = ReduceState((ContentSegment("a"),))
        after = reduce_segments(before, ContentDelta("b"))
        assert before.segments == (ContentSegment("a"),)
        assert after.segments == (ContentSegment("ab"),)


class TestChunkingInvariance:
    @pytest.mark.parametrize("make", [ContentDelta, ThinkingDelta])
    def test_every_split_gives_same_segments(self, make):
        text = "CPM $5.2"
        whole = _fold([make(text)])
        # Each bit of the mask marks a cut between two characters.
        for mask in range(2 ** (len(text) - 1)):
            pieces, start = [], 0
            for i in range(1, len(text)):
                if mask & (1 << (i - 1)):
                    pieces.append(text[start:i])
                    start = i
            pieces.append(text[start:])
            assert _fold([make(p) for p in pieces]) == whole, pieces

    @pytest.mark.parametrize("make", [ContentDelta, ThinkingDelta])
    def test_empty_pieces_are_ignored(self, make):
        assert _fold([make(""), make("ab"), make(""), make("c")]) == _fold([make("abc")])

    def test_empty_delta_does_not_open_segment(self):
        segments = _fold([ToolCallStart(name="Read", tool_use_id="t"), ContentDelta("")])
        assert len(segments) == 1


# ─────────────────────────────────────────────────────────────────────────────
# Tool calls
# ─────────────────────────────────────────────────────────────────────────────

class TestToolCalls:
    def test_result_matches_by_id(self):
        segments = _fold([
            ToolCallStart(name="Read", tool_use_id="a"),
            ToolCallStart(name="Grep", tool_use_id="b"),
            ToolResult(tool_use_id="a", result="file contents"),
        ])
        first, second = segments[0].tool_call, segments[1].tool_call
        assert first.status is ToolCallStatus.COMPLETED
        assert first.result == "file contents"
        assert second.status is ToolCallStatus.RUNNING

    def test_error_result_marks_error(self):
        segments = _fold([
            ToolCallStart(name="Bash", tool_use_id="a"),
            ToolResult(tool_use_id="a", result="boom", is_error=True),
        ])
        assert segments[0].tool_call.status is ToolCallStatus.ERROR

    def test_unknown_id_falls_back_to_single_running_call(self):
        segments = _fold([
            ToolCallStart(name="Read", tool_use_id="a"),
            ToolResult(tool_use_id="zzz", result="ok"),
        ])
        assert segments[0].tool_call.status is ToolCallStatus.COMPLETED

    def test_ambiguous_result_is_dropped(self):
        segments = _fold([
            ToolCallStart(name="Read", tool_use_id="a"),
            ToolCallStart(name="Grep", tool_use_id="b"),
            ToolResult(tool_use_id=None, result="?"),
        ])
        assert all(s.tool_call.status is ToolCallStatus.RUNNING for s in segments)

    def test_missing_tool_use_id_gets_generated(self):
        segments = _fold([ToolCallStart(name="Read")])
        assert segments[0].tool_call.id.startswith("tool-")

    def test_terminal_status_is_final(self):
        call = ToolCall(id="a", name="Read").with_result("done")
        assert call.with_result("again", is_error=True) is call
        assert call.interrupted() is call
        assert call.status is ToolCallStatus.COMPLETED

    def test_late_result_does_not_revive_interrupted_call(self):
        call = ToolCall(id="a", name="Read").interrupted()
        state = ReduceState((ToolCallSegment(call),))
        state = reduce_segments(state, ToolResult(tool_use_id="a", result="late"))
        assert state.segments[0].tool_call.status is ToolCallStatus.INTERRUPTED
        assert state.segments[0].tool_call.result is None


# ─────────────────────────────────────────────────────────────────────────────
# finalize
# ─────────────────────────────────────────────────────────────────────────────

class TestFinalize:
    def test_interrupt_marks_running_call(self):
        acc = StreamAccumulator()
        acc.apply(ContentDelta("Looking it up"))
        acc.apply(ToolCallStart(name="WebSearch", tool_use_id="t1"))

        message = acc.finalize(run_id="run-1")
        assert message is not None
        assert message.segments[0] == ContentSegment("Looking it up")
        assert message.tool_calls[0].status is ToolCallStatus.INTERRUPTED
        assert message.run_id == "run-1"

    def test_blank_thinking_dropped(self):
        frozen = finalize_segments([ThinkingSegment("   "), ContentSegment("ok")])
        assert frozen == (ContentSegment("ok"),)

    def test_finalize_clears_and_is_idempotent(self):
        acc = StreamAccumulator()
        acc.apply(ContentDelta("x"))
        assert acc.finalize() is not None
        assert acc.is_empty
        assert acc.finalize() is None

    def test_finalize_empty_returns_none(self):
        assert StreamAccumulator().finalize() is None

    def test_segments_list_is_a_copy(self):
        acc = StreamAccumulator()
        acc.apply(ContentDelta("x"))
        snapshot = acc.segments
        acc.apply(ContentDelta("y"))
        assert snapshot == [ContentSegment("x")]

    def test_to_dict_shape(self):
        acc = StreamAccumulator()
        acc.apply(ContentDelta("hi"))
        acc.apply(ToolCallStart(name="Read", arguments={"path": "a"}, tool_use_id="t"))
        d = acc.finalize().to_dict()
        assert d["role"] == "assistant"
        assert d["segments"][0] == {"type": "content", "content": "hi"}
        assert d["segments"][1]["toolCall"]["status"] == "interrupted"
