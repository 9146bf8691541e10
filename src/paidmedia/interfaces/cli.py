"""
interfaces/cli.py — Paid Media Chat REPL

Interactive terminal client over the ChatController.
Uses rich for rendering; blocking input() runs in the default executor so
the event loop keeps streaming while the prompt waits.

Features:
  - Streamed content, thinking and tool calls rendered as they arrive
  - Skill detection summary after every finalized turn
  - /stop, /new, /brief, /lock <section>, /help, /quit
  - Ctrl+C during a turn interrupts it; Ctrl+D at the prompt exits
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from paidmedia.exceptions import SectionNotFoundError
from paidmedia.observability.logger import get_logger
from paidmedia.runtime import Runtime
from paidmedia.skills.merge import SkillOutcome
from paidmedia.stream.segments import FinalizedMessage

log = get_logger(__name__)

_HELP_TEXT = """
| Command | Description |
|---|---|
| `/stop` | Interrupt the running turn |
| `/new` | Start a fresh session |
| `/brief` | Show the campaign brief document |
| `/lock <section>` | Toggle the lock on a brief section |
| `/help` | Show this help |
| `/quit` | Exit |
"""


class ChatCLI:
    def __init__(self, runtime: Runtime, console: Optional[Console] = None) -> None:
        self.runtime = runtime
        self.controller = runtime.controller
        self.console = console or Console()
        self._turn_done = asyncio.Event()
        self._in_thinking = False
        self._unsubscribe = self.controller.subscribe(self._on_envelope)
        self.controller.on_finalized = self._on_finalized

    # ── Entry ─────────────────────────────────────────────────────────────────

    async def run(self) -> int:
        self._print_banner()
        result = await self.controller.start_session()
        if "error" in result:
            self.console.print(f"[red]❌ {escape(result['error'])}[/]")
            return 1

        loop = asyncio.get_running_loop()
        try:
            while True:
                try:
                    line = await loop.run_in_executor(None, input, "\npaidmedia> ")
                except (EOFError, KeyboardInterrupt):
                    self.console.print("\n[dim]Goodbye.[/]")
                    break

                line = line.strip()
                if not line:
                    continue
                if line.startswith("/"):
                    if not await self._dispatch_command(line):
                        break
                    continue
                await self._send(line)
        finally:
            # Also reached when asyncio.run cancels us on Ctrl+C.
            self._unsubscribe()
            await self.runtime.shutdown()
        return 0

    # ── Commands ──────────────────────────────────────────────────────────────

    async def _dispatch_command(self, line: str) -> bool:
        cmd, _, arg = line.partition(" ")
        cmd = cmd.lower()

        if cmd in ("/quit", "/exit"):
            self.console.print("[dim]Goodbye.[/]")
            return False
        if cmd == "/help":
            self.console.print(Markdown(_HELP_TEXT))
        elif cmd == "/stop":
            await self.controller.stop_session()
            self.console.print("[yellow]🛑 Interrupted.[/]")
        elif cmd == "/new":
            result = await self.controller.start_session()
            if "error" in result:
                self.console.print(f"[red]❌ {escape(result['error'])}[/]")
            else:
                self.console.print(f"[dim]New session {result['session_id']}[/]")
        elif cmd == "/brief":
            self._print_brief()
        elif cmd == "/lock":
            self._toggle_lock(arg.strip())
        else:
            self.console.print(f"[yellow]Unknown command {escape(cmd)}. Try /help.[/]")
        return True

    async def _send(self, text: str) -> None:
        if not self.runtime.sessions.has_session():
            result = await self.controller.start_session()
            if "error" in result:
                self.console.print(f"[red]❌ {escape(result['error'])}[/]")
                return

        self._turn_done.clear()
        ack = self.controller.send_message(text)
        if "error" in ack:
            self.console.print(f"[red]❌ {escape(ack['error'])}[/]")
            return

        try:
            await self._turn_done.wait()
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None:
                task.uncancel()
            await self.controller.stop_session()
            self.console.print("\n[yellow]🛑 Interrupted.[/]")

    def _toggle_lock(self, section: str) -> None:
        if not section:
            self.console.print("[yellow]Usage: /lock <section>[/]")
            return
        try:
            locked = self.runtime.brief.toggle_lock(section)
        except SectionNotFoundError as e:
            self.console.print(f"[red]{escape(str(e))}[/]")
            return
        state = "locked" if locked else "unlocked"
        self.console.print(f"[dim]Section {section} {state}.[/]")

    # ── Rendering ─────────────────────────────────────────────────────────────

    def _print_banner(self) -> None:
        cfg = self.runtime.client.config
        self.console.print(
            Panel(
                f"[bold]Paid Media Assistant[/]  ·  "
                f"Upstream: [cyan]{cfg.llm_proxy_url}[/]  ·  "
                f"Model: [cyan]{cfg.model or 'default'}[/]\n\n"
                f"Type your message or [bold]/help[/] for commands.",
                border_style="cyan",
                padding=(0, 2),
            )
        )

    def _on_envelope(self, envelope: dict[str, Any]) -> None:
        kind = envelope["type"]
        if kind == "event":
            self._render_event(envelope["data"])
        elif kind == "done":
            self._in_thinking = False
            self.console.print()
            self._turn_done.set()
        elif kind == "error":
            self._in_thinking = False
            self.console.print(f"\n[red]❌ {escape(envelope['message'])}[/]")
            self._turn_done.set()

    def _render_event(self, data: dict[str, Any]) -> None:
        event_type = data.get("type")
        if event_type == "content":
            if self._in_thinking:
                self.console.print()
                self._in_thinking = False
            self.console.print(data["content"], end="", markup=False, highlight=False)
        elif event_type == "thinking":
            self._in_thinking = True
            self.console.print(Text(data["content"], style="dim italic"), end="")
        elif event_type == "thinking_start":
            self.console.print("\n[dim]💭 thinking…[/]")
        elif event_type == "tool_call":
            self._in_thinking = False
            self.console.print(f"\n[cyan]⚙  {escape(str(data.get('tool')))}[/]")
        elif event_type == "tool_result":
            style = "red" if data.get("isError") else "green"
            mark = "✗" if data.get("isError") else "✓"
            self.console.print(f"[{style}]{mark}[/] [dim]{escape(str(data.get('result', ''))[:120])}[/]")

    def _on_finalized(self, message: FinalizedMessage, outcome: Optional[SkillOutcome]) -> None:
        if outcome is None:
            return
        summary = f"[bold]{outcome.skill_name}[/] detected"
        if outcome.merge is not None:
            applied = outcome.merge.applied_fields
            summary += f"  ·  {len(applied)} field(s) written to the brief"
            if outcome.merge.skipped:
                skipped = ", ".join(f"{s.field} ({s.reason})" for s in outcome.merge.skipped)
                summary += f"\n[dim]Skipped: {skipped}[/]"
        self.console.print(Panel(summary, border_style="magenta", padding=(0, 2)))

    def _print_brief(self) -> None:
        table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
        table.add_column("Section")
        table.add_column("Field")
        table.add_column("Value")
        for key, section in self.runtime.brief.snapshot().items():
            flags = " 🔒" if section["locked"] else ""
            edited = set(section["userEditedFields"])
            for i, (field_name, value) in enumerate(section["fields"].items()):
                shown = ", ".join(value) if isinstance(value, list) else str(value or "")
                marker = " ✎" if field_name in edited else ""
                table.add_row(f"{key}{flags}" if i == 0 else "", f"{field_name}{marker}", escape(shown))
        self.console.print(table)
