"""Word timing estimation and caption rendering."""

from .captions import CaptionRenderer
from .word_timing import WordTimingEstimator, estimate_word_timings, tokenize

__all__ = ["CaptionRenderer", "WordTimingEstimator", "estimate_word_timings", "tokenize"]
