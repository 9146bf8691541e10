"""Control surface consumed by a UI layer."""

from paidmedia.gateway.controller import ChatController
from paidmedia.gateway.protocol import EnvelopeType, StreamEnvelope

__all__ = ["ChatController", "EnvelopeType", "StreamEnvelope"]
