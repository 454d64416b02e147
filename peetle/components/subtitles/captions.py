"""Caption rendering: per-word pop-in ``drawtext`` or whole-line burned-in subtitles.

The two modes are mutually exclusive. Word mode is used whenever word tokens
exist and ``captions.mode`` is ``word``; otherwise the intervals are written to
an SRT file and burned in with the ``subtitles`` filter.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pysubs2

from ...models import TimelineInterval, WordToken
from ...utils.easing import fmt_num
from ...utils.logger import logger
from ...utils.subtitle_text import (
    escape_drawtext,
    escape_filter_path,
    is_effective_caption_text,
    normalize_caption_text,
)
from ..config.settings import CaptionSettings
from ..video.filter_graph import FilterGraph, filter_call

# share of the pop spent growing to the overshoot; the rest settles to 1.0
POP_RISE_SHARE = 0.6


def pop_timings(settings: CaptionSettings, duration: float) -> Tuple[float, float]:
    """(rise, settle) seconds for a token of ``duration`` seconds.

    The pop never takes more than half of a very short token.
    """
    pop = min(settings.pop_duration, max(duration, 0.0) * 0.5)
    rise = pop * POP_RISE_SHARE
    return rise, pop - rise


def pop_scale_at(settings: CaptionSettings, token: WordToken, t: float) -> float:
    """Font-size multiplier at time ``t`` (Python twin of :func:`pop_scale_expr`)."""
    rise, settle = pop_timings(settings, token.duration)
    lo, hi = settings.pop_start_scale, settings.pop_overshoot
    dt = t - token.start
    if rise > 0 and dt < rise:
        return lo + (hi - lo) * max(dt, 0.0) / rise
    if settle > 0 and dt < rise + settle:
        return hi - (hi - 1.0) * (dt - rise) / settle
    return 1.0


def pop_scale_expr(settings: CaptionSettings, token: WordToken) -> str:
    rise, settle = pop_timings(settings, token.duration)
    if rise <= 0:
        return "1"
    s = fmt_num(token.start)
    lo, hi = settings.pop_start_scale, settings.pop_overshoot
    grow = f"{fmt_num(lo)}+{fmt_num(hi - lo)}*(t-{s})/{fmt_num(rise)}"
    if settle <= 0:
        return f"if(lt(t-{s},{fmt_num(rise)}),{grow},1)"
    shrink = f"{fmt_num(hi)}-{fmt_num(hi - 1.0)}*(t-{s}-{fmt_num(rise)})/{fmt_num(settle)}"
    return (
        f"if(lt(t-{s},{fmt_num(rise)}),{grow},"
        f"if(lt(t-{s},{fmt_num(rise + settle)}),{shrink},1))"
    )


def fade_duration_for(settings: CaptionSettings, duration: float) -> float:
    return min(settings.fade_duration, max(duration, 0.0) / 3.0)


def alpha_at(settings: CaptionSettings, token: WordToken, t: float) -> float:
    """Opacity at time ``t`` (Python twin of :func:`alpha_expr`)."""
    f = fade_duration_for(settings, token.duration)
    if f <= 0:
        return 1.0
    value = min((t - token.start) / f, (token.end - t) / f, 1.0)
    return max(0.0, value)


def alpha_expr(settings: CaptionSettings, token: WordToken) -> str:
    f = fade_duration_for(settings, token.duration)
    if f <= 0:
        return "1"
    s, e, fs = fmt_num(token.start), fmt_num(token.end), fmt_num(f)
    return f"max(0,min(min((t-{s})/{fs},({e}-t)/{fs}),1))"


class CaptionRenderer:
    def __init__(self, settings: CaptionSettings):
        self.settings = settings

    def display_text(self, token: WordToken) -> str:
        text = normalize_caption_text(token.text)
        return text.upper() if self.settings.uppercase else text

    def word_filter(self, token: WordToken) -> str:
        """One ``drawtext`` that pops ``token`` in and fades it out inside its window."""
        cs = self.settings
        size = f"{cs.font_size}*({pop_scale_expr(cs, token)})"
        opts = {}
        if cs.font_file:
            opts["fontfile"] = f"'{escape_filter_path(cs.font_file)}'"
        opts.update(
            text=f"'{escape_drawtext(self.display_text(token))}'",
            fontsize=f"'{size}'",
            fontcolor=cs.font_color,
            borderw=cs.border_width,
            bordercolor=cs.border_color,
            x="'(w-text_w)/2'",
            y=f"'({cs.y})-text_h/2'",
            alpha=f"'{alpha_expr(cs, token)}'",
            enable=f"'between(t,{fmt_num(token.start)},{fmt_num(token.end)})'",
        )
        return filter_call("drawtext", **opts)

    def word_filters(self, tokens: Sequence[WordToken]) -> List[str]:
        return [
            self.word_filter(tok)
            for tok in tokens
            if tok.end > tok.start and is_effective_caption_text(tok.text)
        ]

    def write_line_subtitles(
        self, intervals: Sequence[TimelineInterval], output_path: Path, format: str = "srt"
    ) -> Path:
        """Write one subtitle event per interval with pysubs2."""
        subs = pysubs2.SSAFile()
        for iv in intervals:
            if not is_effective_caption_text(iv.source_text):
                continue
            payload = normalize_caption_text(iv.source_text)
            if format == "ass":
                payload = payload.replace("\n", r"\N")
            subs.append(
                pysubs2.SSAEvent(
                    start=int(round(iv.start * 1000)),
                    end=int(round(iv.end * 1000)),
                    text=payload,
                )
            )
        output_path = Path(output_path)
        subs.save(str(output_path), format_=format)
        return output_path

    def line_filter(self, subtitle_path: Path) -> str:
        return filter_call(
            "subtitles",
            f"'{escape_filter_path(str(subtitle_path))}'",
            force_style=f"'{self.settings.line_style}'",
        )

    def use_word_mode(self, tokens: Sequence[WordToken]) -> bool:
        return self.settings.mode == "word" and bool(tokens)

    def add_to_graph(
        self,
        graph: FilterGraph,
        input_label: str,
        tokens: Sequence[WordToken],
        intervals: Sequence[TimelineInterval],
        work_dir: Path,
        output: Optional[str] = None,
    ) -> Tuple[str, List[Path]]:
        """Append the caption stage. Returns the new label and temp files created.

        With nothing to caption the input label is returned unchanged.
        """
        if self.use_word_mode(tokens):
            filters = self.word_filters(tokens)
            if filters:
                logger.debug(f"[Captions] word mode, {len(filters)} drawtext filters")
                return graph.add(input_label, filters, output=output, prefix="cap"), []

        if any(is_effective_caption_text(iv.source_text) for iv in intervals):
            srt_path = Path(work_dir) / "captions.srt"
            self.write_line_subtitles(intervals, srt_path)
            logger.debug(f"[Captions] line mode, subtitles from {srt_path.name}")
            label = graph.add(
                input_label, self.line_filter(srt_path), output=output, prefix="cap"
            )
            return label, [srt_path]

        return input_label, []
