"""
session/ — Session lifecycle

One long-lived session per SessionManager: a MessageChannel feeding the
agent client and a forwarding task draining its event stream into a sink.
"""

from paidmedia.session.channel import CancellationContext, MessageChannel
from paidmedia.session.manager import Session, SessionManager, SessionStatus

__all__ = [
    "CancellationContext",
    "MessageChannel",
    "Session",
    "SessionManager",
    "SessionStatus",
]
