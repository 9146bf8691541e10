"""Stream accumulation: agent events in, display segments and finalized messages out."""

from paidmedia.stream.accumulator import StreamAccumulator, reduce_segments
from paidmedia.stream.segments import (
    ContentSegment,
    FinalizedMessage,
    Segment,
    ThinkingSegment,
    ToolCall,
    ToolCallSegment,
    ToolCallStatus,
)

__all__ = [
    "StreamAccumulator",
    "reduce_segments",
    "ContentSegment",
    "FinalizedMessage",
    "Segment",
    "ThinkingSegment",
    "ToolCall",
    "ToolCallSegment",
    "ToolCallStatus",
]
