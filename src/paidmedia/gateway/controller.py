"""
gateway/controller.py — Chat Control Surface

The one object a UI layer talks to:

    controller.subscribe(on_envelope)      # metadata / event / done / error
    await controller.start_session()      # {"session_id": ...} | {"error": ...}
    controller.send_message("Plan a Q3 launch")
    await controller.stop_session()

It owns the StreamAccumulator for the live turn. On done (or error) it
finalizes the turn into a FinalizedMessage, runs skill detection and merge
against the document store, and only then tells subscribers the turn ended.
"""

from __future__ import annotations

import inspect
import time
import uuid
from typing import Any, Awaitable, Callable, Optional, Union

from paidmedia.agent.client import AgentClient
from paidmedia.agent.events import (
    AgentEvent,
    CONTENT_EVENT_TYPES,
    Metadata,
    StreamError,
    TurnDone,
)
from paidmedia.documents.store import DocumentStore
from paidmedia.exceptions import PaidMediaError
from paidmedia.gateway.protocol import StreamEnvelope
from paidmedia.observability.logger import get_logger
from paidmedia.session.manager import SessionManager
from paidmedia.skills.merge import SkillEngine, SkillOutcome
from paidmedia.stream.accumulator import StreamAccumulator
from paidmedia.stream.segments import FinalizedMessage

log = get_logger(__name__)

NOT_CONFIGURED_MESSAGE = "Agent client not initialized. Configure API key in Settings."
EMPTY_MESSAGE = "Cannot send empty message"

Subscriber = Callable[[dict[str, Any]], Union[None, Awaitable[None]]]
FinalizedCallback = Callable[[FinalizedMessage, Optional[SkillOutcome]], None]


class ChatController:
    def __init__(
        self,
        sessions: SessionManager,
        client: AgentClient,
        engine: SkillEngine,
        store: Optional[DocumentStore] = None,
        *,
        on_finalized: Optional[FinalizedCallback] = None,
    ) -> None:
        self._sessions = sessions
        self._client = client
        self._engine = engine
        self._store = store
        self._accumulator = StreamAccumulator()
        self._subscribers: list[Subscriber] = []
        self._run_id: Optional[str] = None

        self.on_finalized = on_finalized
        self.messages: list[FinalizedMessage] = []
        self.last_outcome: Optional[SkillOutcome] = None
        self.agent_session_id: Optional[str] = None

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def session_id(self) -> Optional[str]:
        return self._sessions.session_id

    @property
    def accumulator(self) -> StreamAccumulator:
        return self._accumulator

    @property
    def store(self) -> Optional[DocumentStore]:
        return self._store

    # ── Subscription ──────────────────────────────────────────────────────────

    def subscribe(self, on_event: Subscriber) -> Callable[[], None]:
        """Register a subscriber. Returns a function that removes it."""
        self._subscribers.append(on_event)

        def unsubscribe() -> None:
            if on_event in self._subscribers:
                self._subscribers.remove(on_event)

        return unsubscribe

    async def _emit(self, envelope: StreamEnvelope) -> None:
        payload = envelope.to_dict()
        for subscriber in list(self._subscribers):
            try:
                result = subscriber(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log.error(
                    "controller.subscriber_failed",
                    envelope=envelope.type.value,
                    error=str(e),
                    exc_info=True,
                )

    # ── Control operations ────────────────────────────────────────────────────

    async def start_session(self) -> dict[str, Any]:
        """Start a fresh session, disposing any previous one."""
        if not self._client.is_configured():
            return {"error": NOT_CONFIGURED_MESSAGE}

        current = self._sessions.current
        if current is not None and current.is_open:
            await self._sessions.dispose_session()
            self._finalize()

        session_id = f"session-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"
        try:
            await self._sessions.create_session(session_id, self._on_event, self._client.chat)
        except PaidMediaError as e:
            log.error("controller.start_failed", error=str(e))
            return {"error": str(e)}

        self._accumulator.reset()
        self.agent_session_id = None
        return {"session_id": session_id}

    def send_message(self, content: str) -> dict[str, Any]:
        if not self._sessions.has_session():
            return {"error": "No active session"}

        trimmed = (content or "").strip()
        if not trimmed:
            return {"error": EMPTY_MESSAGE}

        try:
            self._sessions.push_message(trimmed)
        except PaidMediaError as e:
            log.warning("controller.send_failed", error=str(e))
            return {"error": str(e)}

        self._run_id = f"run-{uuid.uuid4().hex[:12]}"
        self.messages.append(FinalizedMessage(content=trimmed, role="user", run_id=self._run_id))
        return {"ok": True}

    async def stop_session(self) -> None:
        """Interrupt the live turn. Safe to call with nothing running."""
        await self._sessions.interrupt_session()
        # The agent may stop without a terminal event; keep partial output.
        self._finalize()

    # ── Event sink ────────────────────────────────────────────────────────────

    async def _on_event(self, event: AgentEvent) -> None:
        session_id = self._sessions.session_id

        if isinstance(event, Metadata):
            self.agent_session_id = event.session_id
        elif event.type in CONTENT_EVENT_TYPES:
            self._accumulator.apply(event)
        elif isinstance(event, TurnDone):
            self._finalize()
        elif isinstance(event, StreamError):
            log.warning("controller.stream_error", message=event.message)
            partial = self._finalize()
            self.messages.append(FinalizedMessage(
                content=event.message,
                role="assistant",
                segments=partial.segments if partial else (),
                run_id=self._run_id,
            ))

        await self._emit(StreamEnvelope.from_event(event, session_id))

    def _finalize(self) -> Optional[FinalizedMessage]:
        message = self._accumulator.finalize(run_id=self._run_id)
        if message is None:
            return None

        self.messages.append(message)
        outcome = None
        if message.content:
            outcome = self._engine.process(message.content, self._store)
            if outcome is not None:
                self.last_outcome = outcome

        if self.on_finalized is not None:
            self.on_finalized(message, outcome)
        return message
