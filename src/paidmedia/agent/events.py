"""
agent/events.py — Uniform Agent Stream Events

The agent client translates SDK-native messages into these frozen
dataclasses. Five variants carry turn content (the StreamEvent union);
three more frame the stream (Metadata, TurnDone, StreamError).

Every event knows its wire form via to_dict(), which is what the control
surface hands to subscribers inside an {"type": "event", "data": ...}
envelope.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Union


class EventType(str, Enum):
    CONTENT        = "content"
    THINKING       = "thinking"
    THINKING_START = "thinking_start"
    TOOL_CALL      = "tool_call"
    TOOL_RESULT    = "tool_result"
    METADATA       = "metadata"
    DONE           = "done"
    ERROR          = "error"


# ─────────────────────────────────────────────────────────────────────────────
# StreamEvent variants
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ContentDelta:
    text: str
    type: ClassVar[EventType] = EventType.CONTENT

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "content": self.text}


@dataclass(frozen=True)
class ThinkingDelta:
    text: str
    type: ClassVar[EventType] = EventType.THINKING

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "content": self.text}


@dataclass(frozen=True)
class ThinkingStart:
    """A new reasoning block opened; the next thinking delta starts a segment."""
    type: ClassVar[EventType] = EventType.THINKING_START

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value}


@dataclass(frozen=True)
class ToolCallStart:
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    tool_use_id: Optional[str] = None
    type: ClassVar[EventType] = EventType.TOOL_CALL

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": self.type.value, "tool": self.name, "input": self.arguments}
        if self.tool_use_id:
            d["toolUseId"] = self.tool_use_id
        return d


@dataclass(frozen=True)
class ToolResult:
    tool_use_id: Optional[str]
    result: str
    is_error: bool = False
    type: ClassVar[EventType] = EventType.TOOL_RESULT

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "type": self.type.value,
            "toolUseId": self.tool_use_id,
            "result": self.result,
        }
        if self.is_error:
            d["isError"] = True
        return d


# ─────────────────────────────────────────────────────────────────────────────
# Stream framing
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Metadata:
    """Emitted once when the SDK reports its own session id."""
    session_id: Optional[str] = None
    agent_id: Optional[str] = None
    type: ClassVar[EventType] = EventType.METADATA

    def to_dict(self) -> dict[str, Any]:
        return {"sessionId": self.session_id, "agentId": self.agent_id}


@dataclass(frozen=True)
class TurnDone:
    """End of one agent turn. interrupted=True when cut short by the user."""
    interrupted: bool = False
    type: ClassVar[EventType] = EventType.DONE

    def to_dict(self) -> dict[str, Any]:
        return {"interrupted": self.interrupted}


@dataclass(frozen=True)
class StreamError:
    """Terminal failure. Nothing follows an error on the same stream."""
    message: str
    type: ClassVar[EventType] = EventType.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message}


StreamEvent = Union[ContentDelta, ThinkingDelta, ThinkingStart, ToolCallStart, ToolResult]
AgentEvent = Union[StreamEvent, Metadata, TurnDone, StreamError]

CONTENT_EVENT_TYPES = frozenset({
    EventType.CONTENT,
    EventType.THINKING,
    EventType.THINKING_START,
    EventType.TOOL_CALL,
    EventType.TOOL_RESULT,
})


def is_terminal(event: AgentEvent) -> bool:
    """True for events that end a turn (done) or the whole stream (error)."""
    return event.type in (EventType.DONE, EventType.ERROR)
