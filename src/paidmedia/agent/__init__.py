"""Agent SDK adapter and the uniform event stream it produces."""

from paidmedia.agent.client import AgentClient, AgentConfig, ConnectionCheck
from paidmedia.agent.events import (
    AgentEvent,
    ContentDelta,
    EventType,
    Metadata,
    StreamError,
    StreamEvent,
    ThinkingDelta,
    ThinkingStart,
    ToolCallStart,
    ToolResult,
    TurnDone,
)

__all__ = [
    "AgentClient",
    "AgentConfig",
    "ConnectionCheck",
    "AgentEvent",
    "ContentDelta",
    "EventType",
    "Metadata",
    "StreamError",
    "StreamEvent",
    "ThinkingDelta",
    "ThinkingStart",
    "ToolCallStart",
    "ToolResult",
    "TurnDone",
]
