"""
session/manager.py — Session Lifecycle Manager

Owns at most one non-closed Session. For that session it:
  - opens a MessageChannel that the agent client consumes as its prompt
  - runs ONE background task that drives chat_fn(channel) and forwards
    every event to the sink
  - interrupts through the channel's CancellationContext, bounded by a
    stall timeout so a hung turn cannot block the caller forever

State machine:
    idle ──create──▶ active ──interrupt──▶ interrupting ──▶ closed
                        └──── stream end / error / dispose ───▶ closed

A TurnDone event ends one turn, not the session: the conversation stays
active and accepts the next message.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Union

from paidmedia.agent.events import (
    AgentEvent,
    EventType,
    StreamError,
    TurnDone,
    is_terminal,
)
from paidmedia.exceptions import NoActiveSessionError, SessionError
from paidmedia.observability.logger import bind_session, clear_session, get_logger
from paidmedia.session.channel import MessageChannel

log = get_logger(__name__)

DEFAULT_STALL_TIMEOUT = 60.0

ChatFunction = Callable[
    [MessageChannel],
    Union[AsyncIterator[AgentEvent], Awaitable[AsyncIterator[AgentEvent]]],
]
EventSink = Callable[[AgentEvent], Union[None, Awaitable[None]]]


class SessionStatus(str, Enum):
    IDLE         = "idle"
    ACTIVE       = "active"
    INTERRUPTING = "interrupting"
    CLOSED       = "closed"


@dataclass
class Session:
    """Handle for the single live conversation. Mutated only by its own task."""
    id: str
    channel: MessageChannel
    sink: EventSink
    status: SessionStatus = SessionStatus.IDLE
    started_at: float = field(default_factory=time.time)
    last_activity_at: float = field(default_factory=time.time)
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def is_open(self) -> bool:
        return self.status is not SessionStatus.CLOSED


class SessionManager:
    """Single-session lifecycle: create, push, interrupt, dispose."""

    def __init__(self, stall_timeout: float = DEFAULT_STALL_TIMEOUT) -> None:
        self._session: Optional[Session] = None
        self._stall_timeout = stall_timeout

    # ── Queries ───────────────────────────────────────────────────────────────

    @property
    def current(self) -> Optional[Session]:
        return self._session

    @property
    def session_id(self) -> Optional[str]:
        return self._session.id if self._session else None

    @property
    def stall_timeout(self) -> float:
        return self._stall_timeout

    def has_session(self) -> bool:
        """True while a session exists and accepts messages."""
        return self._session is not None and self._session.status is SessionStatus.ACTIVE

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def create_session(
        self,
        session_id: str,
        sink: EventSink,
        chat_fn: ChatFunction,
    ) -> Session:
        """
        Open a channel and start the forwarding task.

        Raises SessionError if a non-closed session already exists; dispose
        it first.
        """
        if self._session is not None and self._session.is_open:
            raise SessionError(
                f"Session '{self._session.id}' is still {self._session.status.value}. "
                f"Dispose it before creating a new one."
            )

        session = Session(id=session_id, channel=MessageChannel(), sink=sink)
        self._session = session
        session.task = asyncio.create_task(
            self._pump(session, chat_fn), name=f"session-{session_id}"
        )
        session.status = SessionStatus.ACTIVE
        log.info("session.created", session_id=session_id)
        return session

    def push_message(self, content: str) -> None:
        """
        Enqueue a user message for the in-flight conversation.

        The caller validates content (non-empty, trimmed). Raises
        NoActiveSessionError when nothing is active and ChannelError when
        the channel has already closed.
        """
        session = self._session
        if session is None or session.status is not SessionStatus.ACTIVE:
            raise NoActiveSessionError()
        session.channel.push(content)
        session.last_activity_at = time.time()

    async def interrupt_session(self) -> None:
        """
        Cancel the in-flight turn and wait for the agent to acknowledge.

        Waits for a terminal event for at most stall_timeout seconds. On
        timeout the forwarding task is cancelled, a synthetic StreamError is
        delivered to the sink and the session is closed anyway.
        Idempotent: a no-op when nothing is active.
        """
        session = self._session
        if session is None or not session.is_open:
            return

        if session.status is not SessionStatus.INTERRUPTING:
            session.status = SessionStatus.INTERRUPTING
            session.channel.context.set_deadline(self._stall_timeout)
            session.channel.cancel("interrupted")
            log.info("session.interrupting", session_id=session.id)

        task = session.task
        if task is None:
            session.status = SessionStatus.CLOSED
            return

        timeout = session.channel.context.remaining()
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if done:
            return

        log.warning(
            "session.interrupt_stalled",
            session_id=session.id,
            timeout_seconds=self._stall_timeout,
        )
        await self._cancel_task(task)
        session.status = SessionStatus.CLOSED
        await self._deliver(
            session,
            StreamError(
                f"Interrupt timed out: the agent did not stop within {self._stall_timeout:g} seconds. "
                f"The session was closed; start a new one to continue."
            ),
        )

    async def dispose_session(self) -> None:
        """Tear the session down immediately, without waiting for the agent."""
        session = self._session
        if session is None:
            return
        session.channel.cancel("disposed")
        if session.task is not None:
            await self._cancel_task(session.task)
        session.status = SessionStatus.CLOSED
        self._session = None
        log.info("session.disposed", session_id=session.id)

    # ── Forwarding task ───────────────────────────────────────────────────────

    async def _pump(self, session: Session, chat_fn: ChatFunction) -> None:
        """Drive chat_fn(channel) and forward its events to the sink."""
        bind_session(session.id)
        turn_open = False
        stream: Any = None
        try:
            stream = chat_fn(session.channel)
            if inspect.isawaitable(stream):
                stream = await stream

            async for event in stream:
                session.last_activity_at = time.time()
                interrupting = session.status is SessionStatus.INTERRUPTING

                # Content stops flowing the moment an interrupt begins.
                if interrupting and not is_terminal(event):
                    continue

                if event.type is not EventType.METADATA:
                    turn_open = not is_terminal(event)
                await self._deliver(session, event)

                if event.type is EventType.ERROR:
                    break
                if interrupting and event.type is EventType.DONE:
                    break

            if turn_open:
                await self._deliver(
                    session,
                    TurnDone(interrupted=session.status is SessionStatus.INTERRUPTING),
                )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if session.status is SessionStatus.INTERRUPTING:
                log.info("session.stream_error_after_interrupt", error=str(e))
                await self._deliver(session, TurnDone(interrupted=True))
            else:
                log.error("session.stream_failed", error=str(e), error_type=type(e).__name__)
                await self._deliver(session, StreamError(str(e) or type(e).__name__))
        finally:
            session.channel.close()
            closer = getattr(stream, "aclose", None)
            if closer is not None:
                try:
                    await closer()
                except RuntimeError as e:
                    log.debug("session.stream_close_failed", error=str(e))
            session.status = SessionStatus.CLOSED
            log.info("session.closed", session_id=session.id)
            clear_session()

    async def _deliver(self, session: Session, event: AgentEvent) -> None:
        try:
            result = session.sink(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            log.error(
                "session.sink_failed",
                event_type=event.type.value,
                error=str(e),
                exc_info=True,
            )

    @staticmethod
    async def _cancel_task(task: asyncio.Task) -> None:
        if task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
