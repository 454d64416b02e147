"""Configuration utilities for peetle components."""

from .io import load_config
from .merge import merge_configs
from .settings import (
    CaptionSettings,
    CharacterSettings,
    ImageSettings,
    Settings,
    SystemSettings,
    TimingSettings,
    VoiceSettings,
    load_settings,
)
from .validate import validate_config

__all__ = [
    "load_config",
    "merge_configs",
    "validate_config",
    "load_settings",
    "Settings",
    "TimingSettings",
    "CharacterSettings",
    "CaptionSettings",
    "ImageSettings",
    "VoiceSettings",
    "SystemSettings",
]
