"""PDF text extraction via pdftotext."""

from __future__ import annotations

from gnomelama.documents.fallback import ExtractionApproach, ExtractionError, try_in_order
from gnomelama.logging import get_logger
from gnomelama.terminal.protocol import TerminalExecutor
from gnomelama.terminal.result import CommandResult
from gnomelama.terminal.subprocess_executor import SubprocessTerminalExecutor

log = get_logger("documents.pdf")

PDF_OPTION_SETS: tuple[tuple[str, ...], ...] = (
    ("-layout", "-q"),
    ("-raw", "-q"),
    ("-q",),
    ("-f", "1", "-l", "5", "-q"),  # first five pages only
)


def pdf_approaches(path: str) -> list[ExtractionApproach]:
    return [ExtractionApproach("pdftotext", (*options, path, "-")) for options in PDF_OPTION_SETS]


def _accept(index: int, approach: ExtractionApproach, result: CommandResult) -> str | None:
    if result.exit_code == 0 and result.stdout.strip():
        return result.stdout

    stderr = result.stderr
    if "password" in stderr:
        raise ExtractionError("PDF appears to be password protected. Unable to convert.")
    if any(word in stderr for word in ("damaged", "corrupt", "invalid")):
        raise ExtractionError("PDF appears to be damaged or corrupted. Unable to convert.")
    return None


async def extract_pdf_text(
    path: str,
    executor: TerminalExecutor | None = None,
    timeout: float | None = 60.0,
) -> str:
    """Extract text from a PDF, trying progressively simpler pdftotext modes.

    Raises:
        ExtractionError: The PDF is encrypted or damaged, or no mode produced text.
    """
    runner = executor or SubprocessTerminalExecutor()
    text = await try_in_order(
        pdf_approaches(path),
        lambda a: runner.execute(a.command, list(a.args), timeout=timeout),
        _accept,
    )
    if text is None:
        log.warning("pdftotext produced no text for %s", path)
        raise ExtractionError("Failed to extract text from PDF using all available methods")
    return text
