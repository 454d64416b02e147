"""Pipeline phases: speech/audio assembly and video rendering."""

from .audio_phase import AudioPhase, AudioResult
from .render_phase import RenderPhase

__all__ = ["AudioPhase", "AudioResult", "RenderPhase"]
