"""Helpers for normalising caption strings and escaping them for ffmpeg filters."""
from __future__ import annotations

import re
from typing import Optional

_BR_TAG_PATTERN = re.compile(r"<br\s*/?>", re.IGNORECASE)
_WHITESPACE_PATTERN = re.compile(r"[ \t]+")


def normalize_caption_text(text: str | None) -> str:
    """Normalise caption text for drawtext and subtitle file output.

    Manual line-break hints are converted to real newlines:

    - literal ``\\n`` sequences inside YAML strings
    - Windows style newlines (``\\r\\n``) and bare ``\\r``
    - HTML style ``<br>`` tags (case insensitive, optional slash)

    Runs of spaces and tabs collapse to a single space. ``None`` becomes ``""``.
    """
    if text is None:
        return ""

    value = str(text)
    if not value:
        return ""

    value = value.replace("\r\n", "\n").replace("\r", "\n")
    value = value.replace("\\n", "\n")
    value = _BR_TAG_PATTERN.sub("\n", value)
    lines = [_WHITESPACE_PATTERN.sub(" ", line).strip() for line in value.split("\n")]
    return "\n".join(lines).strip("\n")


def is_effective_caption_text(text: Optional[str]) -> bool:
    """Return True if the given text should produce a caption entry."""
    if text is None:
        return False

    normalized = normalize_caption_text(text).strip()
    if not normalized:
        return False

    if len(normalized) >= 2 and normalized[0] == normalized[-1] and normalized[0] in {'"', "'"}:
        if not normalized[1:-1].strip():
            return False

    return True


def escape_drawtext(text: str) -> str:
    """Escape a literal for use inside ``drawtext=text='...'``."""
    return (
        text.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace(":", "\\:")
        .replace("%", "\\%")
        .replace("\n", "\\n")
    )


def escape_filter_path(path: str) -> str:
    """Escape a file path used as a filter option value (``subtitles=``, ``fontfile=``)."""
    return (
        str(path)
        .replace("\\", "/")
        .replace(":", "\\:")
        .replace("'", "\\'")
        .replace(",", "\\,")
    )
