"""Typed view over the merged YAML configuration.

Components receive the pieces of :class:`Settings` they need at construction
time instead of reading module-level constants.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ...exceptions import ValidationError
from ...models import Speaker
from ...utils.ffmpeg_params import AudioParams, VideoParams
from .io import load_config
from .merge import merge_configs
from .validate import validate_config

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "templates" / "config.yaml"


def _pick(cls, data: Dict[str, Any]):
    """Build dataclass ``cls`` from ``data`` ignoring unknown keys."""
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in (data or {}).items() if k in names})


@dataclass
class TimingSettings:
    gap: float = 0.8
    volume_boost: float = 2.0
    pre_roll: float = 0.2
    post_roll: float = 0.6
    character_slide: float = 0.8
    image_slide: float = 0.4
    image_min_duration: float = 0.5


@dataclass
class CharacterSettings:
    name: str
    voice_id: str
    portrait: str
    enter_from: str = "left"
    rest_x: float = 0.0
    y: float = 0.0
    box: int = 600

    def offscreen_x(self, frame_width: int) -> float:
        """入場側の画面外 x 座標。left なら枠ごと左へ、right なら右端のすぐ外。"""
        if self.enter_from == "left":
            return -float(self.box)
        return float(frame_width)


@dataclass
class CaptionSettings:
    mode: str = "word"
    font_file: Optional[str] = None
    font_size: int = 96
    font_color: str = "white"
    border_color: str = "black"
    border_width: int = 6
    y: str = "h*0.38"
    pop_duration: float = 0.15
    pop_overshoot: float = 1.15
    pop_start_scale: float = 0.7
    fade_duration: float = 0.08
    uppercase: bool = True
    line_style: str = (
        "Fontsize=22,PrimaryColour=&Hffffff,OutlineColour=&H000000,"
        "Outline=3,Alignment=2,MarginV=150,Bold=1"
    )


@dataclass
class ImageSettings:
    dir: Optional[str] = None
    max_width: int = 800
    max_height: int = 600
    jpeg_quality: int = 85
    rest_y: float = 260
    max_file_mb: float = 10
    allowed_extensions: Tuple[str, ...] = (".jpg", ".jpeg", ".png", ".gif", ".webp")

    def __post_init__(self) -> None:
        self.allowed_extensions = tuple(e.lower() for e in self.allowed_extensions)

    @property
    def max_file_bytes(self) -> int:
        return int(self.max_file_mb * 1024 * 1024)


@dataclass
class VoiceSettings:
    provider: str = "elevenlabs"
    base_url: str = "https://api.elevenlabs.io"
    model_id: str = "eleven_monolingual_v1"
    stability: float = 0.5
    similarity_boost: float = 0.5
    style: float = 0.3
    use_speaker_boost: bool = False
    max_chars: int = 5000
    timeout: float = 30
    fixture_dir: Optional[str] = None
    api_key: Optional[str] = None

    def voice_settings_payload(self) -> Dict[str, Any]:
        return {
            "stability": self.stability,
            "similarity_boost": self.similarity_boost,
            "style": self.style,
            "use_speaker_boost": self.use_speaker_boost,
        }


@dataclass
class SystemSettings:
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    probe_timeout: float = 30
    mix_timeout: float = 120
    render_timeout: float = 900
    work_root: str = "./work"
    keep_work_dir: bool = False
    asset_cache_dir: str = "./cache/assets"
    asset_cache_ttl: float = 3600
    download_timeout: float = 60


@dataclass
class Settings:
    characters: Dict[Speaker, CharacterSettings]
    background_source: str
    timing: TimingSettings = field(default_factory=TimingSettings)
    captions: CaptionSettings = field(default_factory=CaptionSettings)
    images: ImageSettings = field(default_factory=ImageSettings)
    voice: VoiceSettings = field(default_factory=VoiceSettings)
    system: SystemSettings = field(default_factory=SystemSettings)
    video: VideoParams = field(default_factory=VideoParams)
    audio: AudioParams = field(default_factory=AudioParams)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "Settings":
        characters = {
            Speaker(slot): _pick(CharacterSettings, data)
            for slot, data in (config.get("characters") or {}).items()
        }
        voice = _pick(VoiceSettings, config.get("voice", {}))
        if not voice.api_key:
            voice.api_key = os.getenv("ELEVENLABS_API_KEY")
        video_cfg = dict(config.get("video", {}))
        if "level" in video_cfg:
            video_cfg["level"] = str(video_cfg["level"])
        return cls(
            characters=characters,
            background_source=str((config.get("background") or {}).get("source", "")),
            timing=_pick(TimingSettings, config.get("timing", {})),
            captions=_pick(CaptionSettings, config.get("captions", {})),
            images=_pick(ImageSettings, config.get("images", {})),
            voice=voice,
            system=_pick(SystemSettings, config.get("system", {})),
            video=_pick(VideoParams, video_cfg),
            audio=_pick(AudioParams, config.get("audio", {})),
        )

    def character(self, speaker: Speaker) -> CharacterSettings:
        return self.characters[speaker]

    def speaker_for_name(self, name: str) -> Speaker:
        """Map a character name (case-insensitive) or slot letter to its slot."""
        key = (name or "").strip().lower()
        for slot, char in self.characters.items():
            if char.name.lower() == key or slot.value.lower() == key:
                return slot
        known = ", ".join(c.name for c in self.characters.values())
        raise ValidationError(f"Unknown speaker '{name}'. Expected one of: {known}.")


def load_settings(
    user_config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    default_config_path: str | Path = DEFAULT_CONFIG_PATH,
) -> Settings:
    """Load defaults, merge the user file and CLI overrides, validate, and type them."""
    config = load_config(str(default_config_path))
    if user_config_path:
        config = merge_configs(config, load_config(user_config_path))
    if overrides:
        config = merge_configs(config, overrides)
    validate_config(config)
    return Settings.from_dict(config)
