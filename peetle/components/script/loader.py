import re
from pathlib import Path
from typing import Any, Dict, List

from ...exceptions import ValidationError
from ...models import DialogueLine
from ...utils.logger import logger
from ..config.io import load_config
from ..config.settings import Settings

__all__ = [
    "load_dialogue",
    "load_script_overrides",
    "parse_transcript",
    "placeholders_in",
    "ValidationError",
]

YAML_SUFFIXES = {".yaml", ".yml"}
# top-level sections a YAML script may use to override the global config
OVERRIDABLE_SECTIONS = ("timing", "captions", "images", "background", "video", "voice")

_SPEAKER_RE = re.compile(r"^\s*([A-Za-z][\w .'-]{0,40}?)\s*:\s*(.*)$")
_IMAGE_MARKER_RE = re.compile(r"\[\s*image\s*:\s*([^\]]+?)\s*\]\s*$", re.IGNORECASE)


def _split_image_marker(text: str) -> tuple:
    m = _IMAGE_MARKER_RE.search(text)
    if not m:
        return text.strip(), None
    return text[: m.start()].strip(), m.group(1).strip()


def parse_transcript(content: str, settings: Settings) -> List[DialogueLine]:
    """Parse ``Name: text [image: name]`` lines.

    Blank lines, ``#`` comments and lines without a speaker prefix are ignored.
    A prefix naming an unknown character is an error.
    """
    dialogue: List[DialogueLine] = []
    for lineno, raw in enumerate(content.splitlines(), start=1):
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue
        m = _SPEAKER_RE.match(stripped)
        if not m:
            logger.debug(f"[Script] ignoring line {lineno} without a speaker prefix")
            continue
        name, rest = m.group(1), m.group(2)
        try:
            speaker = settings.speaker_for_name(name)
        except ValidationError as e:
            raise ValidationError(str(e.message), line_number=lineno) from e
        text, image = _split_image_marker(rest)
        if not text:
            raise ValidationError(f"Empty text for speaker '{name}'.", line_number=lineno)
        dialogue.append(DialogueLine(speaker=speaker, text=text, image_placeholder=image))
    return dialogue


def _parse_yaml_lines(data: Dict[str, Any], settings: Settings, path: str) -> List[DialogueLine]:
    lines = data.get("lines")
    if not isinstance(lines, list):
        raise ValidationError(f"Script {path} must contain a 'lines' list.")

    dialogue: List[DialogueLine] = []
    for idx, entry in enumerate(lines, start=1):
        if not isinstance(entry, dict):
            raise ValidationError(f"Line {idx} in {path} must be a dictionary.")
        speaker_name = entry.get("speaker")
        if not isinstance(speaker_name, str):
            raise ValidationError(f"Line {idx} in {path} must have a string 'speaker'.")
        text = entry.get("text")
        if not isinstance(text, str) or not text.strip():
            raise ValidationError(f"Line {idx} in {path} must have non-empty 'text'.")
        image = entry.get("image", entry.get("image_placeholder"))
        if image is not None and not isinstance(image, str):
            raise ValidationError(f"Line {idx} in {path}: 'image' must be a string.")
        try:
            speaker = settings.speaker_for_name(speaker_name)
        except ValidationError as e:
            raise ValidationError(f"Line {idx} in {path}: {e.message}") from e
        body, marker = _split_image_marker(text)
        dialogue.append(
            DialogueLine(speaker=speaker, text=body, image_placeholder=image or marker)
        )
    return dialogue


def load_script_overrides(script_path: str) -> Dict[str, Any]:
    """Config sections declared at the top of a YAML script (empty for transcripts)."""
    if Path(script_path).suffix.lower() not in YAML_SUFFIXES:
        return {}
    data = load_config(script_path)
    return {
        key: data[key]
        for key in OVERRIDABLE_SECTIONS
        if isinstance(data.get(key), dict)
    }


def load_dialogue(script_path: str, settings: Settings) -> List[DialogueLine]:
    """
    Load a dialogue script as an ordered list of lines.

    ``.yaml``/``.yml`` files use ``lines: [{speaker, text, image?}]``; anything
    else is read as a plain ``Name: text`` transcript.

    Raises:
        ValidationError: unreadable file, unknown speaker, empty text, or no lines.
    """
    path = Path(script_path)
    if path.suffix.lower() in YAML_SUFFIXES:
        dialogue = _parse_yaml_lines(load_config(str(path)), settings, str(path))
    else:
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ValidationError(f"Script file not found: {script_path}")
        dialogue = parse_transcript(content, settings)

    if not dialogue:
        raise ValidationError(f"No valid dialogue found in {script_path}.")
    logger.info(f"[Script] loaded {len(dialogue)} lines from {path.name}")
    return dialogue


def placeholders_in(dialogue: List[DialogueLine]) -> List[str]:
    """Distinct placeholder names in script order."""
    seen: Dict[str, None] = {}
    for line in dialogue:
        if line.image_placeholder:
            seen.setdefault(line.image_placeholder, None)
    return list(seen)
