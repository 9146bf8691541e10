"""
gateway/protocol.py — Stream Envelope Protocol

Typed envelopes delivered to control-surface subscribers. Every envelope is
a JSON object with a `type` field:

    {"type": "metadata", "data": {"sessionId": ..., "agentId": ...}}
    {"type": "event",    "data": {"type": "content", "content": "..."}}
    {"type": "done"}
    {"type": "error",    "message": "..."}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from paidmedia.agent.events import (
    AgentEvent,
    CONTENT_EVENT_TYPES,
    EventType,
    StreamError,
    TurnDone,
)


class EnvelopeType(str, Enum):
    METADATA = "metadata"
    EVENT    = "event"
    DONE     = "done"
    ERROR    = "error"


@dataclass(frozen=True)
class StreamEnvelope:
    """Envelope for one agent event. Optional fields are dropped on the wire."""
    type: EnvelopeType
    data: Optional[dict[str, Any]] = None
    message: Optional[str] = None
    session_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": self.type.value}
        if self.data is not None:
            d["data"] = self.data
        if self.message is not None:
            d["message"] = self.message
        if self.session_id is not None:
            d["sessionId"] = self.session_id
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_event(cls, event: AgentEvent, session_id: Optional[str] = None) -> "StreamEnvelope":
        if event.type is EventType.METADATA:
            return make_metadata(event.to_dict(), session_id)
        if event.type in CONTENT_EVENT_TYPES:
            return make_event(event.to_dict(), session_id)
        if isinstance(event, TurnDone):
            return make_done(session_id, interrupted=event.interrupted)
        if isinstance(event, StreamError):
            return make_error(event.message, session_id)
        raise ValueError(f"No envelope for event type {event.type!r}")


# ─────────────────────────────────────────────────────────────────────────────
# Factory helpers
# ─────────────────────────────────────────────────────────────────────────────

def make_metadata(data: dict[str, Any], session_id: Optional[str] = None) -> StreamEnvelope:
    return StreamEnvelope(type=EnvelopeType.METADATA, data=data, session_id=session_id)


def make_event(data: dict[str, Any], session_id: Optional[str] = None) -> StreamEnvelope:
    return StreamEnvelope(type=EnvelopeType.EVENT, data=data, session_id=session_id)


def make_done(session_id: Optional[str] = None, *, interrupted: bool = False) -> StreamEnvelope:
    data = {"interrupted": True} if interrupted else None
    return StreamEnvelope(type=EnvelopeType.DONE, data=data, session_id=session_id)


def make_error(message: str, session_id: Optional[str] = None) -> StreamEnvelope:
    return StreamEnvelope(type=EnvelopeType.ERROR, message=message, session_id=session_id)
