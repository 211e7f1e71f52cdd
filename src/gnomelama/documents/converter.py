"""File type detection and conversion of attachments to plain text."""

from __future__ import annotations

import mimetypes
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from gnomelama.documents.fallback import ExtractionError
from gnomelama.documents.pdf import extract_pdf_text
from gnomelama.documents.word import extract_word_text
from gnomelama.logging import get_logger
from gnomelama.terminal.protocol import TerminalExecutor
from gnomelama.terminal.subprocess_executor import SubprocessTerminalExecutor

log = get_logger("documents.converter")


@dataclass(frozen=True)
class FileFormat:
    """A supported attachment format.

    ``kind`` is "text" (read directly) or "document" (needs a converter).
    ``converter`` is the command line run with the file path appended.
    """

    kind: str
    mime_types: tuple[str, ...] = ()
    converter: tuple[str, ...] = ()


@dataclass(frozen=True)
class FileType:
    extension: str
    format: FileFormat = field(compare=False)

    @property
    def is_text(self) -> bool:
        return self.format.kind == "text"


def _text(*mime_types: str) -> FileFormat:
    return FileFormat("text", mime_types)


SUPPORTED_FORMATS: dict[str, FileFormat] = {
    "txt": _text("text/plain"),
    "md": _text("text/markdown"),
    "json": _text("application/json"),
    "xml": _text("application/xml", "text/xml"),
    "html": _text("text/html"),
    "htm": _text("text/html"),
    "css": _text("text/css"),
    "js": _text("text/javascript", "application/javascript"),
    "py": _text("text/x-python"),
    "sh": _text("text/x-shellscript", "application/x-sh"),
    "c": _text("text/x-c"),
    "cpp": _text("text/x-c++"),
    "h": _text("text/x-c-header", "text/x-chdr"),
    "java": _text("text/x-java"),
    "log": _text("text/plain"),
    "ini": _text("text/plain"),
    "csv": _text("text/csv"),
    "yaml": _text("text/yaml", "application/yaml"),
    "yml": _text("text/yaml", "application/yaml"),
    "odt": FileFormat("document", ("application/vnd.oasis.opendocument.text",), ("odt2txt",)),
    "docx": FileFormat(
        "document",
        ("application/vnd.openxmlformats-officedocument.wordprocessingml.document",),
        ("docx2txt",),
    ),
    "doc": FileFormat("document", ("application/msword",), ("catdoc",)),
    "rtf": FileFormat("document", ("application/rtf", "text/rtf"), ("unrtf", "--text")),
    "pdf": FileFormat("document", ("application/pdf",), ("pdftotext", "-layout", "-q")),
}

# Tools probed by check_required_tools()
CONVERTER_TOOLS = (
    "docx2txt",
    "odt2txt",
    "catdoc",
    "unrtf",
    "pdftotext",
    "unzip",
    "antiword",
    "strings",
)


def detect_file_type(path: str | Path) -> FileType | None:
    """Identify a file by extension, falling back to its guessed MIME type."""
    suffix = Path(path).suffix.lower().lstrip(".")
    if suffix in SUPPORTED_FORMATS:
        return FileType(suffix, SUPPORTED_FORMATS[suffix])

    mime_type, _ = mimetypes.guess_type(str(path))
    if mime_type:
        for extension, fmt in SUPPORTED_FORMATS.items():
            if mime_type in fmt.mime_types:
                return FileType(extension, fmt)
    return None


def check_required_tools() -> dict[str, bool]:
    """Which external converters are installed."""
    return {tool: shutil.which(tool) is not None for tool in CONVERTER_TOOLS}


async def _run_converter(
    path: str,
    file_type: FileType,
    executor: TerminalExecutor,
    timeout: float | None,
) -> str:
    command, *args = file_type.format.converter
    result = await executor.execute(command, [*args, path], timeout=timeout)
    if result.exit_code == 0 and result.stdout.strip():
        return result.stdout
    if result.exit_code == 127:
        raise ExtractionError(f"Converter '{command}' not found or not properly installed.")
    detail = result.stderr.strip() or "no output"
    raise ExtractionError(f"{file_type.extension.upper()} conversion failed: {detail}")


async def convert_to_text(
    path: str | Path,
    file_type: FileType | None = None,
    executor: TerminalExecutor | None = None,
    timeout: float | None = 60.0,
) -> str:
    """Return the plain-text content of a supported file.

    Raises:
        ExtractionError: Unsupported format or conversion failure.
        OSError: A text file could not be read.
    """
    path = str(path)
    file_type = file_type or detect_file_type(path)
    if file_type is None:
        raise ExtractionError("Unsupported file format")

    if file_type.is_text:
        return Path(path).read_text(encoding="utf-8", errors="replace")

    runner = executor or SubprocessTerminalExecutor()
    log.debug("Converting %s as %s", path, file_type.extension)

    if file_type.extension == "pdf":
        return await extract_pdf_text(path, runner, timeout=timeout)
    if file_type.extension in ("docx", "doc"):
        return await extract_word_text(path, file_type.extension, runner, timeout=timeout)
    if file_type.format.converter:
        return await _run_converter(path, file_type, runner, timeout)
    raise ExtractionError("Unsupported file format")
