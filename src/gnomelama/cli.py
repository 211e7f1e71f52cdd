"""Command-line interface for gnomelama."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from gnomelama import __version__
from gnomelama.config import get_user_config_path, load_config
from gnomelama.documents import ExtractionError, check_required_tools, load_attachment
from gnomelama.logging import get_logger, setup_logging

if TYPE_CHECKING:
    from gnomelama.config import Config

log = get_logger("cli")

console = Console()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="gnomelama",
        description="Chat with local Ollama models or hosted APIs from the terminal",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (can be repeated)",
    )
    parser.add_argument(
        "-m", "--model",
        help="Model to use (e.g., llama3.2:1b, gpt-4o, gemini:gemini-1.5-pro)",
    )
    parser.add_argument(
        "--list-models",
        action="store_true",
        help="List models from every provider and exit",
    )
    parser.add_argument(
        "--check-tools",
        action="store_true",
        help="Report which document converters are installed and exit",
    )
    parser.add_argument(
        "-a", "--attach",
        action="append",
        type=Path,
        default=[],
        metavar="FILE",
        help="Attach a file to the first message (can be repeated)",
    )
    parser.add_argument(
        "prompt",
        nargs="?",
        help="Send one message and exit instead of starting the chat loop",
    )
    return parser


def _print_tools() -> int:
    table = Table(title="Document Converters")
    table.add_column("Tool", style="bold")
    table.add_column("Installed")
    tools = check_required_tools()
    for tool, installed in tools.items():
        table.add_row(tool, "[green]yes[/green]" if installed else "[red]no[/red]")
    console.print(table)
    return 0


async def _run(args: argparse.Namespace, config: Config) -> int:
    from gnomelama.repl import ChatRepl, print_models, stream_reply
    from gnomelama.session import SessionManager

    manager = SessionManager.from_config(config)
    try:
        if args.list_models:
            listing = await manager.fetch_model_names()
            print_models(console, listing, manager.model.name)
            return 1 if listing.error else 0

        if args.model:
            await manager.fetch_model_names()
            manager.set_model(args.model)

        attachments = []
        for path in args.attach:
            try:
                attachments.append(await load_attachment(path))
            except (ExtractionError, OSError) as e:
                console.print(f"[red]Could not attach {path}: {e}[/red]")
                return 1

        if args.prompt:
            from gnomelama.documents import prepare_message

            message, display = prepare_message(args.prompt, attachments)
            await stream_reply(manager, console, message, display)
            return 1 if manager.get_last_error() else 0

        history_file = None
        user_config = get_user_config_path()
        if user_config is not None:
            history_file = user_config.parent / "history"
            history_file.parent.mkdir(parents=True, exist_ok=True)

        repl = ChatRepl(manager, console, history_file=history_file, attachments=attachments)
        await repl.run()
        return 0
    finally:
        await manager.close()


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Load config before logging so we can use config.logging settings
    config = load_config()
    if args.verbose:
        config.logging.verbose = args.verbose + 1
    setup_logging(config.logging)

    if args.check_tools:
        return _print_tools()

    log.debug("Starting with model=%s", args.model or config.llm.default_model)
    try:
        return asyncio.run(_run(args, config))
    except KeyboardInterrupt:
        return 130
