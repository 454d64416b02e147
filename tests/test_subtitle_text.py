import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from peetle.utils.subtitle_text import (
    escape_drawtext,
    escape_filter_path,
    is_effective_caption_text,
    normalize_caption_text,
)


def test_normalize_caption_text_handles_common_break_markers():
    text = "Line1\\nLine2<BR/>Line3\r\nLine4"
    normalized = normalize_caption_text(text)
    assert normalized == "Line1\nLine2\nLine3\nLine4"


def test_normalize_caption_text_collapses_spaces():
    assert normalize_caption_text("  too    many\tspaces  ") == "too many spaces"
    assert normalize_caption_text(None) == ""


def test_is_effective_caption_text_uses_normalized_content():
    assert is_effective_caption_text("Hi<br>there")
    assert not is_effective_caption_text("   <br>   ")
    assert not is_effective_caption_text("''")
    assert not is_effective_caption_text(None)


def test_escape_drawtext_special_characters():
    assert escape_drawtext("it's 100%: ok") == "it\\'s 100\\%\\: ok"
    assert escape_drawtext("a\\b") == "a\\\\b"


def test_escape_filter_path_for_subtitles_filter():
    assert escape_filter_path("C:\\work\\a,b.srt") == "C\\:/work/a\\,b.srt"
