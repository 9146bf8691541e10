"""
agent/client.py — Claude Agent SDK Client

Runs one long-lived streaming query against the agent SDK per session.
The session's MessageChannel is the prompt; the SDK subprocess reaches the
upstream LLM proxy through the local AuthProxy.

SDK messages are translated one-for-one into agent events:

    SystemMessage(init)                     → Metadata (once)
    StreamEvent content_block_start/thinking → ThinkingStart
    StreamEvent text_delta / thinking_delta  → ContentDelta / ThinkingDelta
    AssistantMessage ToolUseBlock            → ToolCallStart
    UserMessage ToolResultBlock              → ToolResult
    ResultMessage                            → [ContentDelta(result)] + TurnDone

Nothing is buffered or interpreted. Any SDK or transport failure ends the
stream with exactly one StreamError. Cancelling the channel's context ends
it with TurnDone(interrupted=True).
"""

from __future__ import annotations

import asyncio
import json
import os
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator, Callable, Optional

import httpx
from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    ResultMessage,
    SystemMessage,
    ToolResultBlock,
    ToolUseBlock,
    UserMessage,
    query,
)
from claude_agent_sdk.types import StreamEvent as SDKStreamEvent

from paidmedia.agent.events import (
    AgentEvent,
    ContentDelta,
    Metadata,
    StreamError,
    ThinkingDelta,
    ThinkingStart,
    ToolCallStart,
    ToolResult,
    TurnDone,
)
from paidmedia.agent.prompts import PAID_MEDIA_SYSTEM_PROMPT
from paidmedia.config.settings import DEFAULT_ALLOWED_TOOLS, DEFAULT_LLM_PROXY_URL
from paidmedia.exceptions import AgentNotConfiguredError
from paidmedia.observability.logger import get_logger
from paidmedia.proxy.auth_proxy import AuthProxy
from paidmedia.session.channel import CancellationContext, MessageChannel

log = get_logger(__name__)

MAX_TOOL_RESULT_LENGTH = 50_000
DEFAULT_TEST_MODEL = "claude-sonnet-4-20250514"
ANTHROPIC_VERSION = "2023-06-01"

NO_API_KEY_MESSAGE = "No API key configured. Go to Settings to set up your API key."
AUTH_FAILED_MESSAGE = (
    "Authentication failed. Your API key was rejected by the LLM proxy. "
    "Check your API key in Settings."
)

QueryFunction = Callable[..., AsyncIterator[Any]]


@dataclass(frozen=True)
class AgentConfig:
    api_key: Optional[str]
    llm_proxy_url: str = DEFAULT_LLM_PROXY_URL
    auth_scheme: str = "Bearer"
    model: Optional[str] = None
    working_directory: Optional[str] = None
    max_turns: int = 100
    max_thinking_tokens: int = 1024
    allowed_tools: tuple[str, ...] = tuple(DEFAULT_ALLOWED_TOOLS)
    connection_test_timeout: float = 15.0

    @classmethod
    def from_settings(cls, settings) -> "AgentConfig":
        return cls(
            api_key=settings.api_key,
            llm_proxy_url=settings.proxy.llm_proxy_url,
            auth_scheme=settings.proxy.auth_scheme,
            model=settings.agent.model,
            working_directory=settings.agent.working_directory,
            max_turns=settings.agent.max_turns,
            max_thinking_tokens=settings.agent.max_thinking_tokens,
            allowed_tools=tuple(settings.agent.allowed_tools),
            connection_test_timeout=settings.agent.connection_test_timeout_seconds,
        )


@dataclass(frozen=True)
class ConnectionCheck:
    success: bool
    error: Optional[str] = None
    status_code: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"success": self.success}
        if self.error:
            d["error"] = self.error
        return d


def is_auth_failure_line(line: str) -> bool:
    """Subprocess stderr line reporting a rejected key."""
    return "401" in line and any(
        marker in line for marker in ("Authentication failed", "Unauthorized", "Failed to Login")
    )


def flatten_tool_result(content: Any) -> str:
    """Tool result content (str, list of blocks, dict or None) as display text."""
    if content is None:
        text = ""
    elif isinstance(content, str):
        text = content
    elif isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict) and item.get("text"):
                parts.append(str(item["text"]))
            else:
                parts.append(json.dumps(item, default=str))
        text = "\n".join(parts)
    else:
        text = json.dumps(content, default=str)
    return text[:MAX_TOOL_RESULT_LENGTH] or "Completed"


@dataclass
class _StreamState:
    """Per-session translation state."""
    metadata_emitted: bool = False
    session_id: Optional[str] = None
    streamed_text: bool = False
    turn_open: bool = False
    auth_failed: asyncio.Event = field(default_factory=asyncio.Event)

    def on_stderr(self, line: str) -> None:
        log.debug("agent.stderr", line=line.rstrip()[:500])
        if is_auth_failure_line(line) and not self.auth_failed.is_set():
            log.error("agent.auth_rejected")
            self.auth_failed.set()


class _Interrupted(Exception):
    pass


class _AuthRejected(Exception):
    pass


class AgentClient:
    """
    Adapter between a session's MessageChannel and the agent SDK.

    query_fn defaults to claude_agent_sdk.query; tests inject a fake with
    the same (prompt=..., options=...) signature.
    """

    def __init__(
        self,
        config: AgentConfig,
        proxy: AuthProxy,
        *,
        system_prompt: str = PAID_MEDIA_SYSTEM_PROMPT,
        query_fn: Optional[QueryFunction] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._proxy = proxy
        self._system_prompt = system_prompt
        self._query_fn = query_fn or query
        self._http_transport = http_transport

    # ── Configuration ─────────────────────────────────────────────────────────

    @property
    def config(self) -> AgentConfig:
        return self._config

    def is_configured(self) -> bool:
        return bool(self._config.api_key)

    def update_config(self, **changes: Any) -> AgentConfig:
        self._config = replace(self._config, **changes)
        if "llm_proxy_url" in changes and self._proxy.is_running:
            self._proxy.update_target(self._config.llm_proxy_url)
        return self._config

    async def ensure_proxy(self) -> str:
        """Start the auth proxy, or repoint it at the configured upstream."""
        if not self.is_configured():
            raise AgentNotConfiguredError(NO_API_KEY_MESSAGE)
        if self._proxy.is_running and self._proxy.local_url:
            self._proxy.update_target(self._config.llm_proxy_url)
            return self._proxy.local_url
        return await self._proxy.start(self._config.llm_proxy_url)

    def build_options(self, base_url: str, stderr: Callable[[str], None]) -> ClaudeAgentOptions:
        cfg = self._config
        env = {
            "ANTHROPIC_API_KEY": cfg.api_key or "",
            "ANTHROPIC_BASE_URL": base_url,
            "CLAUDE_CODE_USE_BEDROCK": "false",
            "CLAUDE_CODE_USE_VERTEX": "false",
        }
        kwargs: dict[str, Any] = {
            "env": env,
            "cwd": cfg.working_directory or os.getcwd(),
            "allowed_tools": list(cfg.allowed_tools),
            "permission_mode": "bypassPermissions",
            "include_partial_messages": True,
            "max_turns": cfg.max_turns,
            "max_thinking_tokens": cfg.max_thinking_tokens,
            "system_prompt": {
                "type": "preset",
                "preset": "claude_code",
                "append": self._system_prompt,
            },
            "stderr": stderr,
        }
        if cfg.model:
            kwargs["model"] = cfg.model
        return ClaudeAgentOptions(**kwargs)

    # ── Streaming ─────────────────────────────────────────────────────────────

    async def chat(self, channel: MessageChannel) -> AsyncIterator[AgentEvent]:
        """Stream agent events for the whole session behind `channel`."""
        if not self.is_configured():
            yield StreamError(NO_API_KEY_MESSAGE)
            return

        try:
            base_url = await self.ensure_proxy()
        except OSError as e:
            log.error("agent.proxy_start_failed", error=str(e))
            yield StreamError(f"Could not start the local auth proxy: {e}")
            return

        state = _StreamState()
        ctx = channel.context
        options = self.build_options(base_url, stderr=state.on_stderr)
        log.info(
            "agent.stream_started",
            base_url=base_url,
            upstream=self._config.llm_proxy_url,
            model=self._config.model,
        )

        stream = self._query_fn(prompt=channel.messages(), options=options)
        try:
            while True:
                try:
                    message = await self._next_message(stream, ctx, state)
                except StopAsyncIteration:
                    break
                for event in self._translate(message, state):
                    yield event

            if state.auth_failed.is_set():
                yield StreamError(AUTH_FAILED_MESSAGE)
            elif state.turn_open:
                yield TurnDone()
        except _Interrupted:
            log.info("agent.interrupted", reason=ctx.reason)
            yield TurnDone(interrupted=True)
        except _AuthRejected:
            yield StreamError(AUTH_FAILED_MESSAGE)
        except Exception as e:
            if ctx.cancelled:
                log.info("agent.error_after_interrupt", error=str(e))
                yield TurnDone(interrupted=True)
            else:
                log.error("agent.stream_failed", error=str(e), error_type=type(e).__name__)
                yield StreamError(self._describe_error(e, state))
        finally:
            await self._close_stream(stream)

    async def _next_message(
        self,
        stream: AsyncIterator[Any],
        ctx: CancellationContext,
        state: _StreamState,
    ) -> Any:
        """Next SDK message, or raise _Interrupted / _AuthRejected if either fires first."""
        if ctx.cancelled:
            raise _Interrupted()
        if state.auth_failed.is_set():
            raise _AuthRejected()

        next_msg = asyncio.ensure_future(stream.__anext__())
        cancelled = asyncio.ensure_future(ctx.wait())
        rejected = asyncio.ensure_future(state.auth_failed.wait())
        try:
            await asyncio.wait(
                {next_msg, cancelled, rejected},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancelled.cancel()
            rejected.cancel()

        if next_msg.done():
            return next_msg.result()

        next_msg.cancel()
        try:
            await next_msg
        except (asyncio.CancelledError, StopAsyncIteration):
            pass
        if ctx.cancelled:
            raise _Interrupted()
        raise _AuthRejected()

    def _translate(self, message: Any, state: _StreamState) -> list[AgentEvent]:
        events: list[AgentEvent] = []

        if isinstance(message, SystemMessage):
            if message.subtype == "init":
                state.session_id = (message.data or {}).get("session_id")
                if not state.metadata_emitted:
                    state.metadata_emitted = True
                    events.append(Metadata(
                        session_id=state.session_id,
                        agent_id=self._config.model or "default",
                    ))
            # Metadata frames the stream; it does not open a turn.
            return events

        if isinstance(message, SDKStreamEvent):
            event = message.event or {}
            event_type = event.get("type")
            if event_type == "content_block_start":
                block = event.get("content_block") or {}
                if block.get("type") == "thinking":
                    events.append(ThinkingStart())
            elif event_type == "content_block_delta":
                delta = event.get("delta") or {}
                if delta.get("type") == "text_delta" and delta.get("text"):
                    state.streamed_text = True
                    events.append(ContentDelta(delta["text"]))
                elif delta.get("type") == "thinking_delta" and delta.get("thinking"):
                    events.append(ThinkingDelta(delta["thinking"]))

        elif isinstance(message, AssistantMessage):
            for block in message.content:
                if isinstance(block, ToolUseBlock):
                    events.append(ToolCallStart(
                        name=block.name or "unknown",
                        arguments=dict(block.input or {}),
                        tool_use_id=block.id,
                    ))

        elif isinstance(message, UserMessage):
            if isinstance(message.content, list):
                for block in message.content:
                    if isinstance(block, ToolResultBlock) and block.tool_use_id:
                        events.append(ToolResult(
                            tool_use_id=block.tool_use_id,
                            result=flatten_tool_result(block.content),
                            is_error=bool(block.is_error),
                        ))

        elif isinstance(message, ResultMessage):
            state.session_id = message.session_id or state.session_id
            if message.is_error:
                log.warning("agent.turn_error", subtype=message.subtype, turns=message.num_turns)
            if message.result and not state.streamed_text:
                events.append(ContentDelta(message.result))
            log.debug(
                "agent.turn_done",
                duration_ms=message.duration_ms,
                turns=message.num_turns,
                cost_usd=message.total_cost_usd,
            )
            state.streamed_text = False
            state.turn_open = False
            events.append(TurnDone())
            return events

        if events:
            state.turn_open = True
        return events

    @staticmethod
    def _describe_error(error: Exception, state: _StreamState) -> str:
        message = str(error) or type(error).__name__
        if state.auth_failed.is_set() or "401" in message or "Authentication" in message:
            return AUTH_FAILED_MESSAGE
        return f"Agent streaming failed: {message}"

    @staticmethod
    async def _close_stream(stream: Any) -> None:
        closer = getattr(stream, "aclose", None)
        if closer is None:
            return
        try:
            await closer()
        except (RuntimeError, asyncio.CancelledError) as e:
            log.debug("agent.stream_close_failed", error=str(e) or type(e).__name__)

    # ── Connection test ───────────────────────────────────────────────────────

    async def test_connection(self) -> ConnectionCheck:
        """POST a 1-token request straight to the upstream and classify the result."""
        cfg = self._config
        if not cfg.api_key:
            return ConnectionCheck(False, "No API key configured.")

        base_url = cfg.llm_proxy_url.strip().rstrip("/")
        payload = {
            "model": cfg.model or DEFAULT_TEST_MODEL,
            "max_tokens": 1,
            "messages": [{"role": "user", "content": "ping"}],
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"{cfg.auth_scheme} {cfg.api_key}",
            "anthropic-version": ANTHROPIC_VERSION,
        }

        try:
            async with httpx.AsyncClient(
                timeout=cfg.connection_test_timeout,
                transport=self._http_transport,
            ) as client:
                resp = await client.post(f"{base_url}/v1/messages", json=payload, headers=headers)
        except httpx.TimeoutException:
            log.warning("agent.connection_test.timeout", upstream=base_url)
            return ConnectionCheck(False, f"Connection timed out. Cannot reach proxy at {base_url}")
        except httpx.HTTPError as e:
            log.warning("agent.connection_test.failed", upstream=base_url, error=str(e))
            return ConnectionCheck(False, f"Connection failed: {e}")

        status = resp.status_code
        body = resp.text[:200]
        log.info("agent.connection_test", upstream=base_url, status=status)

        if resp.is_success:
            return ConnectionCheck(True, status_code=status)
        if status == 401:
            return ConnectionCheck(
                False,
                f"Authentication failed (401). The proxy rejected your API key. Response: {body}",
                status,
            )
        if status == 403:
            return ConnectionCheck(
                False, "Access denied (403). Your API key may not have LLM proxy permissions.", status
            )
        if status == 404:
            return ConnectionCheck(
                False, f"Endpoint not found (404). The proxy URL may be incorrect: {base_url}", status
            )
        # 400 means auth passed and the request itself was rejected (e.g. unknown model).
        if status == 400 and "Authentication" not in resp.text and "Unauthorized" not in resp.text:
            return ConnectionCheck(True, status_code=status)
        return ConnectionCheck(False, f"Proxy returned HTTP {status}: {body}", status)
