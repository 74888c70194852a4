"""Text extraction for uploaded documents, dispatched on file extension.

| Extension     | Strategy                                              |
|---------------|-------------------------------------------------------|
| .txt, .md     | UTF-8 decode                                          |
| .docx         | read ``word/document.xml`` from the zip, strip tags   |
| .pdf          | vision model transcription of a base64 data URL       |
| anything else | vision transcription when ``vision_fallback`` is set, |
|               | otherwise ``UnsupportedFileTypeError``                |

Extracted text shorter than the caller's minimum is treated as a failed
extraction. :func:`truncate_text` then bounds it for the prompt.
"""

from __future__ import annotations

import base64
import html
import io
import posixpath
import re
import zipfile
from typing import Protocol

from rubrica.errors import InsufficientContentError, UnsupportedFileTypeError
from rubrica.logging import get_logger

logger = get_logger("io.extraction")

PLAIN_TEXT_EXTENSIONS = frozenset({".txt", ".md"})
DOCX_EXTENSION = ".docx"
VISION_EXTENSIONS = frozenset({".pdf"})

MIME_TYPES = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}

DOCX_BODY_ENTRY = "word/document.xml"
# must stay a multiple of 3 so chunk encodings concatenate without padding
BASE64_CHUNK_BYTES = 3 * 32 * 1024
TRUNCATION_MARKER = "\n\n[... middle section truncated due to length ...]\n\n"
HEAD_SHARE = 0.7

_PARAGRAPH_END = re.compile(r"</w:p>")
_TAG = re.compile(r"<[^>]+>")
_HSPACE = re.compile(r"[ \t\r\f\v]+")


class Transcriber(Protocol):
    """Anything that can turn a document data URL into plain text."""

    async def transcribe(self, *, data_url: str) -> str: ...


def file_extension(path: str) -> str:
    return posixpath.splitext(path)[1].lower()


def encode_base64_chunked(data: bytes, chunk_size: int = BASE64_CHUNK_BYTES) -> str:
    """Base64-encode ``data`` in bounded slices."""
    if chunk_size <= 0 or chunk_size % 3:
        raise ValueError("chunk_size must be a positive multiple of 3")
    view = memoryview(data)
    return "".join(
        base64.b64encode(view[i : i + chunk_size]).decode("ascii")
        for i in range(0, len(view), chunk_size)
    )


def to_data_url(data: bytes, media_type: str) -> str:
    return f"data:{media_type};base64,{encode_base64_chunked(data)}"


def extract_docx_text(data: bytes) -> str:
    """Plain text of a .docx body, one line per paragraph."""
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as z:
            xml = z.read(DOCX_BODY_ENTRY).decode("utf-8", errors="replace")
    except (zipfile.BadZipFile, KeyError) as ex:
        raise InsufficientContentError(f"not a readable .docx document: {ex}") from ex
    text = _PARAGRAPH_END.sub("\n", xml)
    text = html.unescape(_TAG.sub("", text))
    lines = (_HSPACE.sub(" ", line).strip() for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


def truncate_text(text: str, max_len: int) -> str:
    """Bound ``text`` to ``max_len`` characters, keeping the head and the tail.

    The head gets 70% and the tail 30% of the space left after the marker, so
    the result is exactly ``max_len`` long and truncating it again is a no-op.
    """
    if max_len < 0:
        raise ValueError("max_len must be >= 0")
    if len(text) <= max_len:
        return text
    room = max_len - len(TRUNCATION_MARKER)
    if room <= 0:
        return text[:max_len]
    head = int(room * HEAD_SHARE)
    tail = room - head
    return text[:head] + TRUNCATION_MARKER + (text[-tail:] if tail else "")


class TextExtractor:
    """Turns stored file bytes into normalized text."""

    def __init__(self, transcriber: Transcriber, *, vision_fallback: bool = False) -> None:
        self._transcriber = transcriber
        self._vision_fallback = vision_fallback

    def strategy(self, path: str) -> str:
        ext = file_extension(path)
        if ext in PLAIN_TEXT_EXTENSIONS:
            return "text"
        if ext == DOCX_EXTENSION:
            return "docx"
        if ext in VISION_EXTENSIONS or self._vision_fallback:
            return "vision"
        raise UnsupportedFileTypeError(f"unsupported file type {ext or '(none)'!r} for {path}")

    async def extract(self, path: str, data: bytes, *, min_chars: int = 0) -> str:
        strategy = self.strategy(path)
        if strategy == "text":
            text = data.decode("utf-8", errors="replace")
        elif strategy == "docx":
            text = extract_docx_text(data)
        else:
            media_type = MIME_TYPES.get(file_extension(path), "application/octet-stream")
            text = await self._transcriber.transcribe(data_url=to_data_url(data, media_type))
        text = (text or "").strip()
        logger.info("extracted %d chars from %s via %s", len(text), path, strategy)
        if len(text) < min_chars:
            raise InsufficientContentError(
                f"only {len(text)} chars extracted from {path} (minimum {min_chars})"
            )
        return text
