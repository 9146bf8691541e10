"""
session/channel.py — Message Channel + Cancellation Context

The session manager hands one MessageChannel to the agent client. The
channel is single-reader: the agent SDK consumes messages() as its
streaming prompt, and the UI side pushes user messages in with push().

Every channel carries a CancellationContext (cancel signal + optional
deadline). It is the only cancellation handle threaded through the call
chain; the agent client checks it between SDK messages.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Optional

from paidmedia.exceptions import ChannelError
from paidmedia.observability.logger import get_logger

log = get_logger(__name__)


class CancellationContext:
    """Cooperative cancellation signal with an optional loop-time deadline."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._deadline: Optional[float] = None
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def cancel(self, reason: str = "cancelled") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    def set_deadline(self, seconds: float) -> None:
        """Set the deadline to `seconds` from now (event-loop clock)."""
        self._deadline = asyncio.get_running_loop().time() + seconds

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, 0.0 once passed, None if unset."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - asyncio.get_running_loop().time())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    async def wait(self) -> None:
        await self._event.wait()


class MessageChannel:
    """Outbound user messages for one session, consumed by the agent SDK."""

    def __init__(self, context: Optional[CancellationContext] = None) -> None:
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self._closed = False
        self.context = context or CancellationContext()

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, content: str) -> None:
        """Enqueue one user message. Raises ChannelError after close()."""
        if self._closed:
            raise ChannelError("Cannot push message to a closed channel")
        self._queue.put_nowait(content)
        log.debug("channel.pushed", length=len(content), pending=self._queue.qsize())

    def close(self) -> None:
        """Stop accepting messages and wake the reader."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    def cancel(self, reason: str = "interrupted") -> None:
        """Signal cancellation and close, so a blocked reader returns."""
        self.context.cancel(reason)
        self.close()

    async def messages(self) -> AsyncIterator[dict[str, Any]]:
        """Yield SDK streaming-input messages until closed or cancelled."""
        while not self.context.cancelled:
            content = await self._queue.get()
            if content is None or self.context.cancelled:
                return
            yield {
                "type": "user",
                "message": {"role": "user", "content": content},
            }
