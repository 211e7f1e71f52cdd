"""Ordered fallback over external extraction tools."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from gnomelama.logging import get_logger
from gnomelama.terminal.result import CommandResult

log = get_logger("documents")

T = TypeVar("T")

# Output shorter than this (after cleanup) is not considered real text
MIN_MEANINGFUL_LENGTH = 20


class ExtractionError(Exception):
    """Text could not be extracted from a document."""


@dataclass(frozen=True)
class ExtractionApproach:
    """One external command to try."""

    command: str
    args: tuple[str, ...] = ()

    def describe(self) -> str:
        return " ".join((self.command, *self.args))


async def try_in_order(
    approaches: Sequence[ExtractionApproach],
    run: Callable[[ExtractionApproach], Awaitable[CommandResult]],
    accept: Callable[[int, ExtractionApproach, CommandResult], T | None],
) -> T | None:
    """Run approaches one at a time until ``accept`` returns a value.

    Each approach runs at most once, in order. ``accept`` receives the
    approach index, the approach and its result, and returns None to fall
    through to the next one. It may raise to stop early.

    Returns:
        The first accepted value, or None if every approach was rejected.
    """
    for index, approach in enumerate(approaches):
        log.debug("Trying approach %d/%d: %s", index + 1, len(approaches), approach.command)
        result = await run(approach)
        accepted = accept(index, approach, result)
        if accepted is not None:
            log.debug("Approach %d succeeded", index + 1)
            return accepted
        log.debug(
            "Approach %d rejected (exit=%s): %s",
            index + 1,
            result.exit_code,
            result.stderr.strip()[:200] or "no output",
        )
    return None
