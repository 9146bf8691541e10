"""
tests/unit/test_gateway_protocol.py — Stream Envelope Protocol Tests
"""

import json

import pytest

from paidmedia.agent.events import (
    ContentDelta,
    Metadata,
    StreamError,
    ThinkingStart,
    ToolCallStart,
    ToolResult,
    TurnDone,
)
from paidmedia.gateway.protocol import EnvelopeType, StreamEnvelope, make_done, make_error


class TestStreamEnvelope:
    def test_content_event(self):
        env = StreamEnvelope.from_event(ContentDelta("hi"), "s1")
        assert env.type is EnvelopeType.EVENT
        assert env.to_dict() == {
            "type": "event",
            "data": {"type": "content", "content": "hi"},
            "sessionId": "s1",
        }

    def test_tool_events(self):
        call = StreamEnvelope.from_event(ToolCallStart(name="Read", arguments={"p": 1}, tool_use_id="t"))
        assert call.data == {"type": "tool_call", "tool": "Read", "input": {"p": 1}, "toolUseId": "t"}

        result = StreamEnvelope.from_event(ToolResult(tool_use_id="t", result="x", is_error=True))
        assert result.data["isError"] is True

    def test_thinking_start(self):
        env = StreamEnvelope.from_event(ThinkingStart())
        assert env.to_dict() == {"type": "event", "data": {"type": "thinking_start"}}

    def test_metadata(self):
        env = StreamEnvelope.from_event(Metadata(session_id="sdk", agent_id="default"))
        assert env.to_dict() == {
            "type": "metadata",
            "data": {"sessionId": "sdk", "agentId": "default"},
        }

    def test_done(self):
        assert StreamEnvelope.from_event(TurnDone()).to_dict() == {"type": "done"}
        assert make_done(interrupted=True).to_dict() == {"type": "done", "data": {"interrupted": True}}

    def test_error(self):
        env = StreamEnvelope.from_event(StreamError("boom"), "s1")
        assert env.to_dict() == {"type": "error", "message": "boom", "sessionId": "s1"}

    def test_to_json(self):
        assert json.loads(make_error("x").to_json()) == {"type": "error", "message": "x"}

    def test_unknown_event_rejected(self):
        class Odd:
            type = "odd"

        with pytest.raises(ValueError):
            StreamEnvelope.from_event(Odd())
