"""Attaching file contents to a prompt."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from gnomelama.documents.converter import convert_to_text
from gnomelama.terminal.protocol import TerminalExecutor

FILES_ATTACHED_MARKER = " ｢files attached｣"


@dataclass(frozen=True)
class Attachment:
    """A file already converted to text."""

    path: str
    content: str

    @property
    def filename(self) -> str:
        return Path(self.path).name


async def load_attachment(path: str | Path, executor: TerminalExecutor | None = None) -> Attachment:
    """Convert a file to an Attachment.

    Raises:
        ExtractionError: The file format is unsupported or conversion failed.
        OSError: The file could not be read.
    """
    content = await convert_to_text(path, executor=executor)
    return Attachment(path=str(path), content=content)


def prepare_message(prompt: str, attachments: Sequence[Attachment]) -> tuple[str, str]:
    """Build the text sent to the model and the text shown in history.

    Without attachments both are the prompt. With attachments the model
    receives a JSON document holding every file and the prompt, while the
    history shows the prompt followed by FILES_ATTACHED_MARKER.

    Returns:
        (message_to_send, display_message)
    """
    if not attachments:
        return prompt, prompt

    payload = {
        "files": [
            {"filename": a.filename, "path": a.path, "content": a.content}
            for a in attachments
        ],
        "prompt": prompt,
    }
    return json.dumps(payload, indent=2, ensure_ascii=False), prompt + FILES_ATTACHED_MARKER
