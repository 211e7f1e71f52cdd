"""Interactive chat loop for the terminal front-end."""

from __future__ import annotations

import asyncio
import shlex
import signal
from typing import TYPE_CHECKING

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.table import Table

from gnomelama.documents import Attachment, ExtractionError, load_attachment, prepare_message
from gnomelama.logging import get_logger
from gnomelama.session import SessionState

if TYPE_CHECKING:
    from pathlib import Path

    from gnomelama.core.llm.registry import ModelListing
    from gnomelama.session import SessionManager

log = get_logger("repl")


def print_models(console: Console, listing: ModelListing, current: str | None = None) -> None:
    """Render a model listing as a table, with per-provider problems below."""
    if listing.models:
        table = Table(title="Available Models")
        table.add_column("Model", style="bold")
        table.add_column("Provider")
        for model in listing.models:
            marker = " *" if model.name == current else ""
            table.add_row(model.name + marker, model.provider)
        console.print(table)
    if listing.error:
        console.print(f"[red]{listing.error}[/red]")
    else:
        for provider, reason in listing.provider_errors.items():
            console.print(f"[dim]{provider}: {reason}[/dim]")


async def stream_reply(
    manager: SessionManager,
    console: Console,
    message: str,
    display_message: str | None = None,
) -> str:
    """Send one message, printing the reply as it streams.

    Ctrl+C during the stream stops it and keeps the partial reply.
    """

    def on_data(text: str) -> None:
        console.print(text, end="", markup=False, highlight=False, soft_wrap=True)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, manager.stop_message)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        handler_installed = False

    try:
        reply = await manager.send_message(message, on_data=on_data, display_message=display_message)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)

    console.print()
    if manager.last_outcome is SessionState.CANCELLED:
        console.print("[dim](stopped)[/dim]")
    return reply


class ChatRepl:
    """Prompt loop with slash commands."""

    def __init__(
        self,
        manager: SessionManager,
        console: Console | None = None,
        history_file: Path | None = None,
        attachments: list[Attachment] | None = None,
    ) -> None:
        self.manager = manager
        self.console = console or Console()
        self.pending_attachments: list[Attachment] = list(attachments or [])
        self._running = False

        history = FileHistory(str(history_file)) if history_file else None
        self.session: PromptSession[str] = PromptSession(
            history=history,
            auto_suggest=AutoSuggestFromHistory(),
        )

        self._handlers = {
            "/help": self._cmd_help,
            "/clear": self._cmd_clear,
            "/models": self._cmd_models,
            "/model": self._cmd_model,
            "/attach": self._cmd_attach,
            "/quit": self._cmd_quit,
        }

    async def run(self) -> None:
        self._running = True
        self.console.print(f"[bold]gnomelama[/bold] - model [cyan]{self.manager.model.name}[/cyan]")
        self.console.print("Type [bold]/help[/bold] for commands, [bold]/quit[/bold] to exit.\n")

        while self._running:
            try:
                line = await asyncio.get_running_loop().run_in_executor(
                    None,
                    lambda: self.session.prompt("you> "),
                )
            except KeyboardInterrupt:
                continue
            except EOFError:
                break

            line = line.strip()
            if not line:
                continue
            if line.startswith("/"):
                await self.handle_command(line)
            else:
                await self.send(line)

        self._running = False

    async def send(self, prompt: str) -> str:
        message, display = prepare_message(prompt, self.pending_attachments)
        self.pending_attachments = []
        return await stream_reply(self.manager, self.console, message, display)

    async def handle_command(self, line: str) -> None:
        try:
            parts = shlex.split(line)
        except ValueError as e:
            self.console.print(f"[red]{e}[/red]")
            return
        if not parts:
            return

        handler = self._handlers.get(parts[0].lower())
        if handler:
            await handler(parts[1:])
        else:
            self.console.print(f"[red]Unknown command: {parts[0]}[/red]")
            self.console.print("Type [bold]/help[/bold] for available commands.")

    async def _cmd_help(self, args: list[str]) -> None:
        table = Table(title="Available Commands")
        table.add_column("Command", style="bold")
        table.add_column("Description")
        for command, description in (
            ("/help", "Show this help message"),
            ("/clear", "Forget the conversation so far"),
            ("/models", "List models from every provider"),
            ("/model <name>", "Switch to another model"),
            ("/attach <file>", "Attach a file to the next message"),
            ("/quit", "Exit"),
        ):
            table.add_row(command, description)
        self.console.print(table)

    async def _cmd_clear(self, args: list[str]) -> None:
        self.manager.clear_conversation_history()
        self.console.print("[dim]Conversation cleared.[/dim]")

    async def _cmd_models(self, args: list[str]) -> None:
        listing = await self.manager.fetch_model_names()
        print_models(self.console, listing, self.manager.model.name)

    async def _cmd_model(self, args: list[str]) -> None:
        if not args:
            self.console.print(f"Current model: [cyan]{self.manager.model.name}[/cyan]")
            return
        if self.manager.registry.last_listing is None:
            await self.manager.fetch_model_names()
        model = self.manager.set_model(args[0])
        self.console.print(f"Model set to [cyan]{model.name}[/cyan] ({model.provider})")

    async def _cmd_attach(self, args: list[str]) -> None:
        if not args:
            self.console.print("[red]Usage: /attach <file>[/red]")
            return
        for path in args:
            try:
                attachment = await load_attachment(path)
            except (ExtractionError, OSError) as e:
                log.warning("Could not attach %s: %s", path, e)
                self.console.print(f"[red]Could not attach {path}: {e}[/red]")
                continue
            self.pending_attachments.append(attachment)
            self.console.print(
                f"[dim]Attached {attachment.filename} ({len(attachment.content)} chars)[/dim]"
            )

    async def _cmd_quit(self, args: list[str]) -> None:
        self._running = False
