"""Plain-text extraction for attached documents."""

from gnomelama.documents.attachments import (
    FILES_ATTACHED_MARKER,
    Attachment,
    load_attachment,
    prepare_message,
)
from gnomelama.documents.converter import (
    SUPPORTED_FORMATS,
    FileFormat,
    FileType,
    check_required_tools,
    convert_to_text,
    detect_file_type,
)
from gnomelama.documents.fallback import (
    MIN_MEANINGFUL_LENGTH,
    ExtractionApproach,
    ExtractionError,
    try_in_order,
)
from gnomelama.documents.pdf import extract_pdf_text
from gnomelama.documents.word import PARTIAL_EXTRACTION_NOTE, cleanup_word_text, extract_word_text

__all__ = [
    # Fallback helper
    "ExtractionApproach",
    "ExtractionError",
    "MIN_MEANINGFUL_LENGTH",
    "try_in_order",
    # Extractors
    "extract_word_text",
    "extract_pdf_text",
    "cleanup_word_text",
    "PARTIAL_EXTRACTION_NOTE",
    # Conversion
    "SUPPORTED_FORMATS",
    "FileFormat",
    "FileType",
    "detect_file_type",
    "convert_to_text",
    "check_required_tools",
    # Attachments
    "FILES_ATTACHED_MARKER",
    "Attachment",
    "load_attachment",
    "prepare_message",
]
