"""
stream/accumulator.py — Stream Segment Accumulator

Folds the uniform agent event stream into an ordered list of display
segments, then freezes them into a FinalizedMessage.

Coalescing:
  - content / thinking deltas append to the trailing segment when it has
    the same type; otherwise a new segment opens
  - thinking_start sets pending_boundary, so the next thinking delta opens
    a fresh segment even right after another thinking segment. Only a
    thinking delta consumes the boundary
  - tool_call always opens a new segment
  - tool_result completes the running call with a matching id, falling back
    to the single running call when no id matches

Empty deltas are ignored, so splitting a string at any point (including
into empty pieces) yields the same segments as the unsplit string.

The accumulator is owned by one forwarding task; it is not safe to apply
events from two tasks at once.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from paidmedia.agent.events import (
    AgentEvent,
    ContentDelta,
    ThinkingDelta,
    ThinkingStart,
    ToolCallStart,
    ToolResult,
)
from paidmedia.observability.logger import get_logger
from paidmedia.stream.segments import (
    ContentSegment,
    FinalizedMessage,
    Segment,
    SegmentType,
    ThinkingSegment,
    ToolCall,
    ToolCallSegment,
    ToolCallStatus,
    new_tool_call_id,
)

log = get_logger(__name__)


@dataclass(frozen=True)
class ReduceState:
    segments: tuple[Segment, ...] = ()
    pending_boundary: bool = False


# ─────────────────────────────────────────────────────────────────────────────
# Pure reducer
# ─────────────────────────────────────────────────────────────────────────────

def reduce_segments(state: ReduceState, event: AgentEvent) -> ReduceState:
    """(segments, event) -> segments'. Events that carry no segment pass through."""
    segments = state.segments

    if isinstance(event, ThinkingStart):
        return ReduceState(segments, pending_boundary=True)

    if isinstance(event, ContentDelta):
        if not event.text:
            return state
        last = segments[-1] if segments else None
        if last is not None and last.type is SegmentType.CONTENT:
            merged = segments[:-1] + (ContentSegment(last.text + event.text),)
        else:
            merged = segments + (ContentSegment(event.text),)
        # The boundary belongs to the next thinking delta only.
        return ReduceState(merged, state.pending_boundary)

    if isinstance(event, ThinkingDelta):
        if not event.text:
            return state
        last = segments[-1] if segments else None
        if last is not None and last.type is SegmentType.THINKING and not state.pending_boundary:
            return ReduceState(segments[:-1] + (ThinkingSegment(last.text + event.text),), False)
        return ReduceState(segments + (ThinkingSegment(event.text),), False)

    if isinstance(event, ToolCallStart):
        call = ToolCall(
            id=event.tool_use_id or new_tool_call_id(),
            name=event.name,
            arguments=dict(event.arguments),
        )
        return ReduceState(segments + (ToolCallSegment(call),), state.pending_boundary)

    if isinstance(event, ToolResult):
        return ReduceState(_apply_tool_result(segments, event), state.pending_boundary)

    return state


def _apply_tool_result(segments: tuple[Segment, ...], event: ToolResult) -> tuple[Segment, ...]:
    tool_indexes = [
        i for i, s in enumerate(segments) if isinstance(s, ToolCallSegment)
    ]
    matched = [
        i for i in tool_indexes
        if event.tool_use_id and segments[i].tool_call.id == event.tool_use_id
    ]

    if not matched:
        running = [
            i for i in tool_indexes
            if segments[i].tool_call.status is ToolCallStatus.RUNNING
        ]
        if len(running) != 1:
            log.debug(
                "accumulator.tool_result_unmatched",
                tool_use_id=event.tool_use_id,
                running=len(running),
            )
            return segments
        matched = running

    updated = list(segments)
    for i in matched:
        call = updated[i].tool_call
        updated[i] = ToolCallSegment(call.with_result(event.result, event.is_error))
    return tuple(updated)


def finalize_segments(segments: Sequence[Segment]) -> tuple[Segment, ...]:
    """Drop blank thinking segments and interrupt every still-running tool call."""
    out: list[Segment] = []
    for seg in segments:
        if isinstance(seg, ThinkingSegment) and not seg.text.strip():
            continue
        if isinstance(seg, ToolCallSegment) and seg.tool_call.status is ToolCallStatus.RUNNING:
            seg = ToolCallSegment(seg.tool_call.interrupted())
        out.append(seg)
    return tuple(out)


def content_text(segments: Sequence[Segment]) -> str:
    return "".join(s.text for s in segments if isinstance(s, ContentSegment))


# ─────────────────────────────────────────────────────────────────────────────
# Stateful wrapper
# ─────────────────────────────────────────────────────────────────────────────

class StreamAccumulator:
    """Holds the live segment list for the single in-flight turn."""

    def __init__(self) -> None:
        self._state = ReduceState()

    @property
    def segments(self) -> list[Segment]:
        return list(self._state.segments)

    @property
    def pending_boundary(self) -> bool:
        return self._state.pending_boundary

    @property
    def is_empty(self) -> bool:
        return not self._state.segments

    def apply(self, event: AgentEvent) -> list[Segment]:
        self._state = reduce_segments(self._state, event)
        return self.segments

    def reset(self) -> None:
        self._state = ReduceState()

    def finalize(
        self,
        *,
        run_id: Optional[str] = None,
        role: str = "assistant",
    ) -> Optional[FinalizedMessage]:
        """
        Freeze the current segments into a FinalizedMessage and clear state.

        Returns None (and changes nothing) when there are no segments, so
        calling it twice for one turn is harmless.
        """
        if not self._state.segments:
            self._state = ReduceState()
            return None

        frozen = finalize_segments(self._state.segments)
        self._state = ReduceState()

        message = FinalizedMessage(
            content=content_text(frozen),
            segments=frozen,
            role=role,
            run_id=run_id,
        )
        log.debug(
            "accumulator.finalized",
            message_id=message.id,
            segments=len(frozen),
            tool_calls=len(message.tool_calls),
            content_length=len(message.content),
        )
        return message
