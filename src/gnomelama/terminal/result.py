"""External command result dataclass."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class CommandResult:
    """Result of running an external tool.

    Attributes:
        command: The command line that was run (for logs).
        exit_code: Process exit code, or None if killed on timeout.
        stdout: Decoded standard output.
        stderr: Decoded standard error.
        status: "ok", "error", or "timeout".
        duration_ms: Execution duration in milliseconds.
    """

    command: str
    exit_code: int | None
    stdout: str
    stderr: str = ""
    status: str = "ok"  # "ok", "error", "timeout"
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        """True if the command completed with exit code 0."""
        return self.exit_code == 0

    def __repr__(self) -> str:
        if self.success:
            return f"<CommandResult ok, {len(self.stdout)} chars>"
        return f"<CommandResult {self.status}, exit={self.exit_code}>"
