"""External command execution for document conversion tools."""

from gnomelama.terminal.protocol import TerminalExecutor
from gnomelama.terminal.result import CommandResult
from gnomelama.terminal.subprocess_executor import SubprocessTerminalExecutor

__all__ = [
    "CommandResult",
    "TerminalExecutor",
    "SubprocessTerminalExecutor",
]
