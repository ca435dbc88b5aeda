"""Rich CLI for the travel assistant.

Features:
- Streaming replies rendered as markdown
- Slash commands (/health, /prefs, /export, /help, /quit, etc.)
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING
from uuid import uuid4

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from travel_ai.assistant.service import ChatRequest
from travel_ai.config import get_travel_ai_home
from travel_ai.core.errors import AllProvidersFailedError

if TYPE_CHECKING:
    from travel_ai.main import Application

console = Console()

HELP_TEXT = """
**Slash Commands:**
- `/help` - Show this help message
- `/health` - Show provider health
- `/prefs` - Show preferences guessed from this conversation
- `/summary` - Show conversation summary
- `/export` - Print the session as JSON
- `/clear` - Start a new conversation
- `/quit` or `/exit` - Exit
"""


class CLI:
    """Interactive chat loop over a TravelAssistant."""

    def __init__(self, app: Application, locale: str | None = None) -> None:
        self.app = app
        self.assistant = app.assistant
        self.locale = locale or app.config.assistant.default_locale
        self.session_id = f"cli-{uuid4().hex[:8]}"

        history_dir = get_travel_ai_home() / "history"
        history_dir.mkdir(parents=True, exist_ok=True)
        self.prompt_session: PromptSession[str] = PromptSession(
            history=FileHistory(str(history_dir / "cli_input.txt")),
        )

    async def run(self) -> None:
        """Main CLI loop."""
        self._print_banner()

        with patch_stdout():
            while True:
                try:
                    user_input = await self.prompt_session.prompt_async("\n> ")
                except (EOFError, KeyboardInterrupt):
                    console.print("\n[dim]Goodbye![/dim]")
                    break

                user_input = user_input.strip()
                if not user_input:
                    continue

                if user_input.startswith("/"):
                    if not await self._handle_command(user_input):
                        break
                    continue

                await self._process_message(user_input)

    async def _process_message(self, text: str) -> None:
        """Stream a reply and render it live."""
        request = ChatRequest(message=text, session_id=self.session_id, locale=self.locale)
        reply = ""
        try:
            with Live(console=console, refresh_per_second=12) as live:
                async for chunk in self.assistant.stream_chat(request):
                    reply = chunk.accumulated
                    live.update(Panel(Markdown(reply), title="[bold blue]Travel AI[/bold blue]",
                                      border_style="blue", padding=(1, 2)))
        except AllProvidersFailedError as e:
            console.print(f"\n[red]{e.user_message}[/red]")
        except (KeyboardInterrupt, asyncio.CancelledError):
            console.print("\n[yellow]Interrupted[/yellow]")

    async def _handle_command(self, command: str) -> bool:
        """Handle a slash command. Returns False if should exit."""
        cmd = command.split(maxsplit=1)[0].lower()

        if cmd in ("/quit", "/exit", "/q"):
            console.print("[dim]Goodbye![/dim]")
            return False

        elif cmd == "/help":
            console.print(Markdown(HELP_TEXT))

        elif cmd == "/health":
            table = Table(title="Provider health")
            for column in ("Provider", "Healthy", "Errors", "Latency", "Last checked"):
                table.add_column(column)
            for record in self.app.providers.get_health_status():
                table.add_row(
                    record.provider,
                    "[green]yes[/green]" if record.healthy else "[red]no[/red]",
                    str(record.error_count),
                    f"{record.latency_ms:.0f} ms" if record.latency_ms is not None else "-",
                    record.last_checked.strftime("%H:%M:%S"),
                )
            console.print(table)

        elif cmd == "/prefs":
            prefs = self.app.memory.extract_preferences_from_history(self.session_id)
            console.print_json(json.dumps(prefs.to_dict(), ensure_ascii=False))

        elif cmd == "/summary":
            summary = self.app.memory.get_summary(self.session_id)
            console.print_json(json.dumps(summary.to_dict(), ensure_ascii=False))

        elif cmd == "/export":
            exported = self.assistant.export_conversation(self.session_id)
            if exported is None:
                console.print("[dim]No conversation yet[/dim]")
            else:
                console.print_json(json.dumps(exported, ensure_ascii=False, default=str))

        elif cmd == "/clear":
            self.assistant.clear_session(self.session_id)
            self.session_id = f"cli-{uuid4().hex[:8]}"
            console.print("[green]Conversation cleared[/green]")

        else:
            console.print(f"[red]Unknown command: {cmd}[/red]")
            console.print("[dim]Type /help for available commands[/dim]")

        return True

    def _print_banner(self) -> None:
        providers = ", ".join(self.app.providers.providers) or "none configured"
        console.print(
            Panel(
                Text.from_markup(
                    "[bold cyan]Travel AI[/bold cyan]\n"
                    f"  [dim]Providers:[/dim] [bold]{providers}[/bold]\n"
                    f"  [dim]Locale:[/dim] {self.locale}\n"
                    "  [dim]Type /help for commands, /quit to exit[/dim]"
                ),
                border_style="cyan",
            )
        )
