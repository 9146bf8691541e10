"""
tests/unit/test_cli.py — Chat REPL Unit Tests

Tests ChatCLI command dispatch and envelope rendering with a recording
rich Console and a runtime built from default settings.

Run with:
    pytest tests/unit/test_cli.py -v
"""

from __future__ import annotations

import asyncio
import threading
from unittest.mock import AsyncMock

import pytest
from rich.console import Console

from paidmedia.config.settings import Settings
from paidmedia.interfaces.cli import ChatCLI
from paidmedia.runtime import build_runtime
from paidmedia.skills.merge import SkillEngine
from paidmedia.stream.segments import FinalizedMessage


# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def cli():
    runtime = build_runtime(Settings())
    console = Console(record=True, width=120, force_terminal=False)
    return ChatCLI(runtime, console=console)


def _output(cli: ChatCLI) -> str:
    return cli.console.export_text()


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────


class TestCommands:
    @pytest.mark.asyncio
    async def test_quit_stops_loop(self, cli):
        assert await cli._dispatch_command("/quit") is False
        assert "Goodbye" in _output(cli)

    @pytest.mark.asyncio
    async def test_help(self, cli):
        assert await cli._dispatch_command("/help") is True
        assert "/brief" in _output(cli)

    @pytest.mark.asyncio
    async def test_unknown_command(self, cli):
        await cli._dispatch_command("/dance")
        assert "Unknown command /dance" in _output(cli)

    @pytest.mark.asyncio
    async def test_lock_toggles_section(self, cli):
        await cli._dispatch_command("/lock budget")
        assert cli.runtime.brief.get("budget").locked is True
        await cli._dispatch_command("/lock budget")
        assert cli.runtime.brief.get("budget").locked is False

    @pytest.mark.asyncio
    async def test_lock_unknown_section(self, cli):
        await cli._dispatch_command("/lock nowhere")
        assert "does not exist" in _output(cli)

    @pytest.mark.asyncio
    async def test_brief_table(self, cli):
        cli.runtime.brief.edit_field("brandProduct", "brandProduct", "Glow SPF 50")
        await cli._dispatch_command("/brief")
        out = _output(cli)
        assert "brandProduct" in out
        assert "Glow SPF 50" in out

    @pytest.mark.asyncio
    async def test_new_session_without_key(self, cli):
        await cli._dispatch_command("/new")
        assert "Configure API key" in _output(cli)


# ─────────────────────────────────────────────────────────────────────────────
# Rendering
# ─────────────────────────────────────────────────────────────────────────────


class TestRendering:
    def test_content_and_done(self, cli):
        cli._on_envelope({"type": "event", "data": {"type": "content", "content": "Hello [b]"}})
        cli._on_envelope({"type": "done"})
        assert "Hello [b]" in _output(cli)
        assert cli._turn_done.is_set()

    def test_error_sets_turn_done(self, cli):
        cli._on_envelope({"type": "error", "message": "upstream 500"})
        assert "upstream 500" in _output(cli)
        assert cli._turn_done.is_set()

    def test_tool_events(self, cli):
        cli._on_envelope({"type": "event", "data": {"type": "tool_call", "tool": "WebSearch", "input": {}}})
        cli._on_envelope({"type": "event", "data": {"type": "tool_result", "toolUseId": "t", "result": "3 hits"}})
        out = _output(cli)
        assert "WebSearch" in out
        assert "3 hits" in out

    def test_skill_summary_panel(self, cli):
        engine = SkillEngine(cli.runtime.registry)
        text = '```brief-update-json\n{"brandProduct": "Glow"}\n```'
        outcome = engine.process(text, cli.runtime.brief)

        cli._on_finalized(FinalizedMessage(content=text), outcome)

        out = _output(cli)
        assert "brief-update" in out
        assert "1 field(s) written" in out

    def test_no_panel_without_skill(self, cli):
        cli._on_finalized(FinalizedMessage(content="plain"), None)
        assert _output(cli) == ""


# ─────────────────────────────────────────────────────────────────────────────
# REPL loop
# ─────────────────────────────────────────────────────────────────────────────


class TestRunLoop:
    @pytest.fixture
    def stubbed(self, cli):
        cli.controller.start_session = AsyncMock(return_value={"session_id": "session-1"})
        cli.runtime.shutdown = AsyncMock()
        return cli

    @pytest.mark.asyncio
    async def test_eof_shuts_down(self, stubbed, monkeypatch):
        def eof(prompt):
            raise EOFError

        monkeypatch.setattr("builtins.input", eof)

        assert await stubbed.run() == 0
        assert "Goodbye" in _output(stubbed)
        stubbed.runtime.shutdown.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cancel_at_prompt_shuts_down(self, stubbed, monkeypatch):
        prompted = threading.Event()
        release = threading.Event()

        def blocking_input(prompt):
            prompted.set()
            release.wait(5)
            raise EOFError

        monkeypatch.setattr("builtins.input", blocking_input)

        task = asyncio.create_task(stubbed.run())
        assert await asyncio.to_thread(prompted.wait, 2)
        task.cancel()
        try:
            with pytest.raises(asyncio.CancelledError):
                await task
        finally:
            release.set()

        stubbed.runtime.shutdown.assert_awaited_once()
