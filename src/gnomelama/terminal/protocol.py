"""Executor protocol for external conversion tools."""

from __future__ import annotations

from typing import Protocol

from gnomelama.terminal.result import CommandResult


class TerminalExecutor(Protocol):
    """Protocol for running external commands.

    Implementations:
    - SubprocessTerminalExecutor: local asyncio subprocess
    - test doubles that replay canned results
    """

    async def execute(
        self,
        command: str,
        args: list[str] | None = None,
        timeout: float | None = 30.0,
    ) -> CommandResult:
        """Run a command and capture its output.

        Args:
            command: Executable name (e.g., "pdftotext", "sh").
            args: Arguments passed verbatim, without shell interpretation.
            timeout: Seconds before the process is killed. None waits forever.

        Returns:
            CommandResult. Missing executables are reported as exit code
            127, never raised.
        """
        ...
