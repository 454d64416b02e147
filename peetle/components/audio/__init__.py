"""Speech synthesis and audio timeline assembly."""

from .elevenlabs_client import ElevenLabsClient
from .generator import AudioGenerator
from .timeline_assembler import TimelineAssembler, layout_intervals

__all__ = ["AudioGenerator", "ElevenLabsClient", "TimelineAssembler", "layout_intervals"]
