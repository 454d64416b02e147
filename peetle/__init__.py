"""Two-character dialogue video generator built on ElevenLabs and FFmpeg."""

__version__ = "0.3.0"
