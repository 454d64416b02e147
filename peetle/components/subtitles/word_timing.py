"""Word-level caption timing computed from the script text.

The synthesized audio is never transcribed: the script is known to be exact,
so each line's words are spread across the line's already-known interval,
weighted by word length.
"""

from __future__ import annotations

import unicodedata
from typing import Iterable, List, Sequence

from ...models import TimelineInterval, WordToken
from ...utils.logger import logger

KEEP_PUNCTUATION = frozenset("!?")


def clean_token(raw: str) -> str:
    """Remove every punctuation character except ``!`` and ``?``."""
    return "".join(
        ch
        for ch in raw
        if ch in KEEP_PUNCTUATION or not unicodedata.category(ch).startswith("P")
    )


def tokenize(text: str) -> List[str]:
    tokens = (clean_token(part) for part in text.split())
    return [tok for tok in tokens if tok]


def word_weight(token: str, base: float = 1.0) -> float:
    """Raw display weight: ``base * (0.7 + 0.6 * min(len/6, 1.5))``."""
    return base * (0.7 + 0.6 * min(len(token) / 6.0, 1.5))


class WordTimingEstimator:
    def __init__(self, base_weight: float = 1.0):
        self.base_weight = base_weight

    def estimate_segment(self, segment: TimelineInterval) -> List[WordToken]:
        """Tokens for one segment, partitioning ``[start, end]`` exactly.

        Returns ``[]`` for degenerate segments (no words, or no length).
        """
        words = tokenize(segment.source_text)
        span = segment.end - segment.start
        if not words or span <= 0:
            return []

        weights = [word_weight(w, self.base_weight) for w in words]
        total = sum(weights)
        if total <= 0:
            return []

        tokens: List[WordToken] = []
        cursor = segment.start
        last = len(words) - 1
        for i, (word, weight) in enumerate(zip(words, weights)):
            # the last token is pinned to the segment end so rounding never drifts
            end = segment.end if i == last else cursor + span * (weight / total)
            tokens.append(
                WordToken(
                    text=word,
                    start=cursor,
                    end=end,
                    speaker=segment.speaker,
                    image_placeholder=segment.image_placeholder if i == 0 else None,
                )
            )
            cursor = end
        return tokens

    def estimate(self, segments: Iterable[TimelineInterval]) -> List[WordToken]:
        out: List[WordToken] = []
        skipped = 0
        for segment in segments:
            tokens = self.estimate_segment(segment)
            if not tokens:
                skipped += 1
                if segment.image_placeholder:
                    logger.warning(
                        f"[Captions] line at {segment.start:.2f}s has no timed words; "
                        f"image '{segment.image_placeholder}' will not be shown"
                    )
                continue
            out.extend(tokens)
        if skipped:
            logger.debug(f"[Captions] skipped {skipped} segment(s) without timed words")
        return out


def estimate_word_timings(
    segments: Sequence[TimelineInterval], base_weight: float = 1.0
) -> List[WordToken]:
    return WordTimingEstimator(base_weight).estimate(segments)
