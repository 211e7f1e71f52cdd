"""Word document (DOCX, DOC) text extraction."""

from __future__ import annotations

import re
import shlex

from gnomelama.documents.fallback import (
    MIN_MEANINGFUL_LENGTH,
    ExtractionApproach,
    ExtractionError,
    try_in_order,
)
from gnomelama.logging import get_logger
from gnomelama.terminal.protocol import TerminalExecutor
from gnomelama.terminal.result import CommandResult
from gnomelama.terminal.subprocess_executor import SubprocessTerminalExecutor

log = get_logger("documents.word")

PARTIAL_EXTRACTION_NOTE = (
    "\n\n[Note: This is partial text extraction using a fallback method. "
    "For better results, install docx2txt/catdoc.]"
)

_MARKUP = re.compile(r"</?[^>]+(>|$)")
_WHITESPACE = re.compile(r"\s+")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_PARAGRAPH_BREAK = re.compile(r"(\w)(\n+)(\w)")
_EMPTY_LINE = re.compile(r"^\s*[\r\n]", re.MULTILINE)


def cleanup_word_text(text: str) -> str:
    """Strip markup, whitespace runs and control characters from tool output."""
    if not text:
        return ""
    result = _MARKUP.sub(" ", text)
    result = _WHITESPACE.sub(" ", result)
    result = _CONTROL_CHARS.sub("", result)
    result = _PARAGRAPH_BREAK.sub(r"\1\n\n\3", result)
    result = _EMPTY_LINE.sub("", result)
    return result.strip()


def _strings_pipeline(path: str) -> ExtractionApproach:
    return ExtractionApproach(
        "sh",
        (
            "-c",
            f"strings {shlex.quote(path)} | grep -v '^[[:space:]]*$' | grep -v '<?xml' "
            "| grep -v '</' | grep -v '^\\[' | head -100",
        ),
    )


def docx_approaches(path: str) -> list[ExtractionApproach]:
    quoted = shlex.quote(path)
    return [
        ExtractionApproach("docx2txt", (path,)),
        # paragraphs only
        ExtractionApproach(
            "sh",
            (
                "-c",
                f"unzip -p {quoted} word/document.xml | grep -o '<w:p>.*</w:p>' "
                "| sed 's/<[^>]*>//g' | sed '/^[[:space:]]*$/d'",
            ),
        ),
        # text runs only
        ExtractionApproach(
            "sh",
            (
                "-c",
                f"unzip -p {quoted} word/document.xml | grep -o '<w:t>[^<]*</w:t>' "
                "| sed 's/<[^>]*>//g' | grep -v '^[[:space:]]*$'",
            ),
        ),
        # whole document.xml, tags removed
        ExtractionApproach(
            "sh",
            (
                "-c",
                f"unzip -p {quoted} word/document.xml | sed 's/<[^>]*>//g' "
                "| grep -v '^[[:space:]]*$'",
            ),
        ),
        _strings_pipeline(path),
    ]


def doc_approaches(path: str) -> list[ExtractionApproach]:
    return [
        ExtractionApproach("catdoc", (path,)),
        ExtractionApproach("antiword", (path,)),
        _strings_pipeline(path),
    ]


def _is_partial(index: int, approach: ExtractionApproach) -> bool:
    if approach.command != "sh":
        return False
    script = approach.args[1] if len(approach.args) > 1 else ""
    return "strings" in script or index > 1


def _accept(index: int, approach: ExtractionApproach, result: CommandResult) -> str | None:
    if result.exit_code != 0 or not result.stdout.strip():
        return None
    cleaned = cleanup_word_text(result.stdout)
    if len(cleaned) <= MIN_MEANINGFUL_LENGTH:
        log.debug("Output too short (%d chars)", len(cleaned))
        return None
    if _is_partial(index, approach):
        return cleaned + PARTIAL_EXTRACTION_NOTE
    return cleaned


async def extract_word_text(
    path: str,
    extension: str,
    executor: TerminalExecutor | None = None,
    timeout: float | None = 30.0,
) -> str:
    """Extract plain text from a DOCX or DOC file.

    Tries dedicated converters first, then unzip/sed pipelines (DOCX),
    then ``strings``. Fallback results carry PARTIAL_EXTRACTION_NOTE.

    Raises:
        ExtractionError: Unsupported extension, or every approach failed.
    """
    ext = extension.lower().lstrip(".")
    if ext == "docx":
        approaches = docx_approaches(path)
    elif ext == "doc":
        approaches = doc_approaches(path)
    else:
        raise ExtractionError(f"Unsupported Word document type: {extension}")

    runner = executor or SubprocessTerminalExecutor()
    text = await try_in_order(
        approaches,
        lambda a: runner.execute(a.command, list(a.args), timeout=timeout),
        _accept,
    )
    if text is None:
        log.warning("All %s extraction approaches failed for %s", ext, path)
        raise ExtractionError(
            f"Failed to extract text from {ext.upper()} document after trying all methods"
        )
    return text
