import re
from typing import Any, Dict, Iterable

from ...exceptions import ValidationError

CAPTION_MODES = {"word", "line"}
VOICE_PROVIDERS = {"elevenlabs", "fixture"}
ENTRY_EDGES = {"left", "right"}
SPEAKER_SLOTS = ("A", "B")

COLOR_RE = re.compile(r"^(#|0x)?[0-9a-fA-F]{6}([0-9a-fA-F]{2})?$")


def _is_valid_color_string(value: str) -> bool:
    """ffmpeg の色指定（名前 / #RRGGBB / 0xRRGGBB[AA] / name@alpha）か判定する。"""
    base = value.split("@", 1)[0]
    if COLOR_RE.match(base):
        return True
    return base.isalpha()


def _section(config: Dict[str, Any], key: str) -> Dict[str, Any]:
    section = config.get(key)
    if section is None:
        raise ValidationError(f"Missing required config section '{key}'.")
    if not isinstance(section, dict):
        raise ValidationError(f"Config section '{key}' must be a dictionary.")
    return section


def _require_number(
    section: Dict[str, Any],
    where: str,
    keys: Iterable[str],
    *,
    positive: bool = False,
    non_negative: bool = False,
) -> None:
    for key in keys:
        value = section.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(
                f"{where}.{key} must be a number, but got {type(value).__name__}."
            )
        if positive and value <= 0:
            raise ValidationError(f"{where}.{key} must be positive, but got {value}.")
        if non_negative and value < 0:
            raise ValidationError(f"{where}.{key} must be non-negative, but got {value}.")


def _validate_video(cfg: Dict[str, Any]) -> None:
    video = _section(cfg, "video")
    _require_number(video, "video", ("width", "height", "fps"), positive=True)
    for dim in ("width", "height"):
        if int(video[dim]) % 2:
            raise ValidationError(f"video.{dim} must be even for yuv420p, got {video[dim]}.")


def _validate_timing(cfg: Dict[str, Any]) -> None:
    timing = _section(cfg, "timing")
    _require_number(
        timing, "timing", ("gap", "pre_roll", "post_roll"), non_negative=True
    )
    _require_number(
        timing,
        "timing",
        ("volume_boost", "character_slide", "image_slide", "image_min_duration"),
        positive=True,
    )


def _validate_characters(cfg: Dict[str, Any]) -> None:
    characters = _section(cfg, "characters")
    names = set()
    for slot in SPEAKER_SLOTS:
        char = characters.get(slot)
        if not isinstance(char, dict):
            raise ValidationError(f"characters.{slot} must be a dictionary.")
        where = f"characters.{slot}"
        name = char.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(f"{where}.name must be a non-empty string.")
        if name.lower() in names:
            raise ValidationError(f"Character name '{name}' is used by more than one slot.")
        names.add(name.lower())
        if not isinstance(char.get("voice_id"), str) or not char["voice_id"]:
            raise ValidationError(f"{where}.voice_id must be a non-empty string.")
        if not isinstance(char.get("portrait"), str) or not char["portrait"]:
            raise ValidationError(f"{where}.portrait must be a path or URL string.")
        edge = char.get("enter_from")
        if edge not in ENTRY_EDGES:
            raise ValidationError(
                f"{where}.enter_from must be one of {sorted(ENTRY_EDGES)}, but got {edge!r}."
            )
        _require_number(char, where, ("rest_x", "y"))
        _require_number(char, where, ("box",), positive=True)

    unknown = set(characters) - set(SPEAKER_SLOTS)
    if unknown:
        raise ValidationError(
            f"Unknown character slot(s) {sorted(unknown)}; only {list(SPEAKER_SLOTS)} are supported."
        )


def _validate_captions(cfg: Dict[str, Any]) -> None:
    captions = _section(cfg, "captions")
    mode = captions.get("mode")
    if mode not in CAPTION_MODES:
        raise ValidationError(
            f"captions.mode must be one of {sorted(CAPTION_MODES)}, but got {mode!r}."
        )
    _require_number(captions, "captions", ("font_size",), positive=True)
    _require_number(
        captions,
        "captions",
        ("border_width", "pop_duration", "fade_duration"),
        non_negative=True,
    )
    for key in ("font_color", "border_color"):
        value = captions.get(key)
        if not isinstance(value, str) or not _is_valid_color_string(value):
            raise ValidationError(f"captions.{key} must be a valid color string, got {value!r}.")


def _validate_images(cfg: Dict[str, Any]) -> None:
    images = _section(cfg, "images")
    _require_number(
        images, "images", ("max_width", "max_height", "max_file_mb"), positive=True
    )
    quality = images.get("jpeg_quality")
    if not isinstance(quality, int) or not (1 <= quality <= 95):
        raise ValidationError(f"images.jpeg_quality must be an integer 1-95, got {quality!r}.")
    exts = images.get("allowed_extensions")
    if not isinstance(exts, list) or not all(
        isinstance(e, str) and e.startswith(".") for e in exts
    ):
        raise ValidationError("images.allowed_extensions must be a list like ['.jpg', '.png'].")


def _validate_voice(cfg: Dict[str, Any]) -> None:
    voice = _section(cfg, "voice")
    provider = voice.get("provider")
    if provider not in VOICE_PROVIDERS:
        raise ValidationError(
            f"voice.provider must be one of {sorted(VOICE_PROVIDERS)}, but got {provider!r}."
        )
    if provider == "fixture" and not voice.get("fixture_dir"):
        raise ValidationError("voice.fixture_dir is required when voice.provider is 'fixture'.")
    for key in ("stability", "similarity_boost", "style"):
        value = voice.get(key)
        if not isinstance(value, (int, float)) or not (0.0 <= value <= 1.0):
            raise ValidationError(f"voice.{key} must be between 0.0 and 1.0, but got {value!r}.")
    _require_number(voice, "voice", ("max_chars", "timeout"), positive=True)


def _validate_system(cfg: Dict[str, Any]) -> None:
    system = _section(cfg, "system")
    _require_number(
        system,
        "system",
        ("probe_timeout", "mix_timeout", "render_timeout", "download_timeout"),
        positive=True,
    )
    _require_number(system, "system", ("asset_cache_ttl",), non_negative=True)


def validate_config(config: Dict[str, Any]) -> None:
    """Validate the merged configuration dictionary.

    Raises
    ------
    ValidationError
        On the first invalid or missing value.
    """
    if not isinstance(config, dict):
        raise ValidationError("Configuration must be a dictionary.")

    _validate_video(config)
    _validate_timing(config)
    _validate_characters(config)
    _validate_captions(config)
    _validate_images(config)
    _validate_voice(config)
    _validate_system(config)

    background = _section(config, "background")
    if not isinstance(background.get("source"), str) or not background["source"]:
        raise ValidationError("background.source must be a path or URL string.")
