"""Subprocess-based executor for local conversion tools."""

from __future__ import annotations

import asyncio
import time

from gnomelama.logging import get_logger
from gnomelama.terminal.result import CommandResult

log = get_logger("terminal")


class SubprocessTerminalExecutor:
    """Run commands with asyncio subprocesses, stdout and stderr kept apart."""

    def __init__(self, cwd: str | None = None) -> None:
        self._cwd = cwd

    async def execute(
        self,
        command: str,
        args: list[str] | None = None,
        timeout: float | None = 30.0,
    ) -> CommandResult:
        start_time = time.perf_counter()
        cmd_list = [command, *(args or [])]
        full_command = " ".join(cmd_list)

        def elapsed() -> float:
            return (time.perf_counter() - start_time) * 1000

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd_list,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
            )
        except FileNotFoundError:
            log.debug("Command not found: %s", command)
            return CommandResult(
                command=full_command,
                exit_code=127,
                stdout="",
                stderr=f"Command not found: {command}",
                status="error",
                duration_ms=elapsed(),
            )
        except PermissionError:
            return CommandResult(
                command=full_command,
                exit_code=126,
                stdout="",
                stderr=f"Permission denied: {command}",
                status="error",
                duration_ms=elapsed(),
            )
        except OSError as e:
            return CommandResult(
                command=full_command,
                exit_code=1,
                stdout="",
                stderr=f"OS error: {e}",
                status="error",
                duration_ms=elapsed(),
            )

        try:
            stdout_data, stderr_data = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            try:
                process.kill()
                await process.wait()
            except ProcessLookupError:
                pass  # already exited
            log.warning("Command timed out after %ss: %s", timeout, full_command)
            return CommandResult(
                command=full_command,
                exit_code=None,
                stdout="",
                stderr=f"Command timed out after {timeout}s",
                status="timeout",
                duration_ms=elapsed(),
            )

        exit_code = process.returncode
        return CommandResult(
            command=full_command,
            exit_code=exit_code,
            stdout=stdout_data.decode("utf-8", errors="replace"),
            stderr=stderr_data.decode("utf-8", errors="replace"),
            status="ok" if exit_code == 0 else "error",
            duration_ms=elapsed(),
        )
