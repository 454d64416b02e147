"""Script loading utilities."""

from .loader import (
    ValidationError,
    load_dialogue,
    load_script_overrides,
    parse_transcript,
    placeholders_in,
)

__all__ = [
    "load_dialogue",
    "load_script_overrides",
    "parse_transcript",
    "placeholders_in",
    "ValidationError",
]
