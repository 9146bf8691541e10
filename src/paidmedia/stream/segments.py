"""
stream/segments.py — Display Segment Types

Segments are immutable. The accumulator never edits one in place; it
replaces the trailing segment (or a tool call segment) with an updated copy,
so a list handed out earlier is never changed behind the caller's back.

ToolCall status is one-directional:
    running ──▶ completed | error | interrupted
Once terminal, with_result() and interrupted() return the call unchanged.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar, Optional, Union


class SegmentType(str, Enum):
    CONTENT   = "content"
    THINKING  = "thinking"
    TOOL_CALL = "tool_call"


class ToolCallStatus(str, Enum):
    RUNNING     = "running"
    COMPLETED   = "completed"
    ERROR       = "error"
    INTERRUPTED = "interrupted"

    @property
    def is_terminal(self) -> bool:
        return self is not ToolCallStatus.RUNNING


def new_tool_call_id() -> str:
    return f"tool-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    result: Optional[str] = None
    status: ToolCallStatus = ToolCallStatus.RUNNING

    def with_result(self, result: str, is_error: bool = False) -> "ToolCall":
        if self.status.is_terminal:
            return self
        status = ToolCallStatus.ERROR if is_error else ToolCallStatus.COMPLETED
        return replace(self, result=result, status=status)

    def interrupted(self) -> "ToolCall":
        if self.status.is_terminal:
            return self
        return replace(self, status=ToolCallStatus.INTERRUPTED)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "arguments": self.arguments,
            "status": self.status.value,
        }
        if self.result is not None:
            d["result"] = self.result
        return d


# ─────────────────────────────────────────────────────────────────────────────
# Segments
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ContentSegment:
    text: str
    type: ClassVar[SegmentType] = SegmentType.CONTENT

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "content": self.text}


@dataclass(frozen=True)
class ThinkingSegment:
    text: str
    type: ClassVar[SegmentType] = SegmentType.THINKING

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "content": self.text}


@dataclass(frozen=True)
class ToolCallSegment:
    tool_call: ToolCall
    type: ClassVar[SegmentType] = SegmentType.TOOL_CALL

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "toolCall": self.tool_call.to_dict()}


Segment = Union[ContentSegment, ThinkingSegment, ToolCallSegment]


# ─────────────────────────────────────────────────────────────────────────────
# FinalizedMessage
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FinalizedMessage:
    """
    One persisted chat message. segments is a tuple so the frozen list
    cannot be appended to after finalize.
    """
    content: str
    segments: tuple[Segment, ...] = ()
    role: str = "assistant"
    id: str = field(default_factory=lambda: f"msg-{uuid.uuid4().hex[:12]}")
    timestamp: float = field(default_factory=time.time)
    run_id: Optional[str] = None

    @property
    def tool_calls(self) -> list[ToolCall]:
        return [s.tool_call for s in self.segments if isinstance(s, ToolCallSegment)]

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if self.segments:
            d["segments"] = [s.to_dict() for s in self.segments]
        if self.run_id:
            d["runId"] = self.run_id
        return d
