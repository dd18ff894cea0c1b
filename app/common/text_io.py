"""Clinician note text: decoding uploads, reading notes from disk, and
parsing the ``Label: value`` header block most EHR exports start with."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterator

from app.common.exceptions import UploadRejectedError

__all__ = [
    "NOTE_SUFFIX",
    "clean_note",
    "decode_note",
    "is_note_filename",
    "iter_labelled_lines",
    "load_note",
]

NOTE_SUFFIX = ".txt"

# "===== CLINICAL NOTE =====", "----- END OF NOTE -----", "*** Confidential ***"
_BANNER_RE = re.compile(r"^\s*([=*\-_#~]{3,}).*\1\s*$|^\s*[=*\-_#~]{3,}\s*$")
_LABEL_RE = re.compile(r"^\s*([A-Za-z][A-Za-z /]*?)\s*:\s*(.+?)\s*$", re.MULTILINE)


def is_note_filename(filename: str) -> bool:
    return filename.lower().endswith(NOTE_SUFFIX)


def decode_note(raw: bytes) -> str:
    """Decode uploaded note bytes as UTF-8 (a leading BOM is dropped).

    Raises UploadRejectedError with code ``INVALID_FILE_ENCODING`` otherwise.
    """
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise UploadRejectedError("File is not valid UTF-8 text", code="INVALID_FILE_ENCODING") from exc
    return text.replace("\r\n", "\n").replace("\r", "\n")


def clean_note(text: str) -> str:
    """Drop banner rules and trailing spaces; collapse runs of blank lines."""
    lines = [line.rstrip() for line in text.splitlines() if not _BANNER_RE.match(line)]
    cleaned = re.sub(r"\n{3,}", "\n\n", "\n".join(lines))
    return cleaned.strip()


def load_note(source: str | Path) -> str:
    """Return a cleaned note from a ``.txt`` path or from the raw note text itself."""
    if isinstance(source, Path):
        return clean_note(decode_note(source.read_bytes()))

    candidate = Path(source)
    if "\n" not in source and is_note_filename(source) and candidate.is_file():
        return clean_note(decode_note(candidate.read_bytes()))
    return clean_note(source)


def iter_labelled_lines(text: str) -> Iterator[tuple[str, str]]:
    """Yield ``(label, value)`` for each ``Label: value`` line; labels are lower-cased."""
    for match in _LABEL_RE.finditer(text):
        yield match.group(1).strip().lower(), match.group(2)
