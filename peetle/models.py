"""Per-request data structures shared by the pipeline components.

Everything here is created for one generation request and thrown away with it.
Timing values are seconds on the combined audio track.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .exceptions import ValidationError
from .utils.easing import (
    affine_expr,
    ease_out_quart,
    ease_out_quart_expr,
    fmt_num,
    progress_expr,
)


class Speaker(str, enum.Enum):
    """キャラクタースロット。各スロットに設定上のキャラクターが1人割り当てられる。"""

    A = "A"
    B = "B"


@dataclass(frozen=True)
class DialogueLine:
    speaker: Speaker
    text: str
    image_placeholder: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.text, str) or not self.text.strip():
            raise ValidationError("Dialogue line text must not be empty.")
        if self.image_placeholder is not None and not str(self.image_placeholder).strip():
            object.__setattr__(self, "image_placeholder", None)


@dataclass
class SpeechClip:
    """One synthesized line. ``measured_duration`` is filled by the prober and is authoritative."""

    speaker: Speaker
    source_line_index: int
    audio_path: Path
    measured_duration: Optional[float] = None


@dataclass(frozen=True)
class TimelineInterval:
    speaker: Speaker
    start: float
    end: float
    source_text: str
    image_placeholder: Optional[str] = None

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class WordToken:
    text: str
    start: float
    end: float
    speaker: Speaker
    image_placeholder: Optional[str] = None

    @property
    def duration(self) -> float:
        return self.end - self.start


class OverlayKind(str, enum.Enum):
    CHARACTER = "character"
    IMAGE = "image"


@dataclass(frozen=True)
class SlideMotion:
    """Straight-line slide along one axis.

    ``offscreen`` is where the element sits before/after its window, ``rest`` is
    the hold position. ``cross`` is the fixed coordinate on the other axis; it may
    be an ffmpeg expression such as ``(W-w)/2``.
    """

    axis: str  # "x" or "y"
    offscreen: float
    rest: float
    cross: Union[float, str] = 0

    def __post_init__(self) -> None:
        if self.axis not in ("x", "y"):
            raise ValueError(f"axis must be 'x' or 'y', got {self.axis!r}")

    @property
    def travel(self) -> float:
        return self.rest - self.offscreen

    def cross_expr(self) -> str:
        if isinstance(self.cross, str):
            return self.cross
        return fmt_num(self.cross)


@dataclass(frozen=True)
class OverlayWindow:
    kind: OverlayKind
    identity: str
    source: Path
    animation_start: float
    slide_in_end: float
    slide_out_start: float
    animation_end: float
    slide_duration: float
    motion: SlideMotion
    box: Tuple[int, int]

    @property
    def is_short(self) -> bool:
        """Too short to hold: slides in over ``slide_duration`` and stays until the end."""
        return self.slide_out_start <= self.slide_in_end

    def enable_expr(self) -> str:
        return f"between(t,{fmt_num(self.animation_start)},{fmt_num(self.animation_end)})"

    def position_expr(self) -> str:
        """Position on the motion axis as an ffmpeg expression in ``t``."""
        m = self.motion
        s = fmt_num(self.animation_start)
        e = fmt_num(self.animation_end)
        off = fmt_num(m.offscreen)
        if self.is_short:
            eased = ease_out_quart_expr(
                progress_expr(self.animation_start, self.slide_duration, clamp=True)
            )
            return f"if(between(t,{s},{e}),{affine_expr(m.offscreen, m.travel, eased)},{off})"

        sin = fmt_num(self.slide_in_end)
        sout = fmt_num(self.slide_out_start)
        ease_in = ease_out_quart_expr(progress_expr(self.animation_start, self.slide_duration))
        ease_out = ease_out_quart_expr(progress_expr(self.slide_out_start, self.slide_duration))
        return (
            f"if(between(t,{s},{sin}),{affine_expr(m.offscreen, m.travel, ease_in)},"
            f"if(between(t,{sin},{sout}),{fmt_num(m.rest)},"
            f"if(between(t,{sout},{e}),{affine_expr(m.rest, -m.travel, ease_out)},"
            f"{off})))"
        )

    @property
    def x_expr(self) -> str:
        if self.motion.axis == "x":
            return self.position_expr()
        return self.motion.cross_expr()

    @property
    def y_expr(self) -> str:
        if self.motion.axis == "y":
            return self.position_expr()
        return self.motion.cross_expr()

    def position_at(self, t: float) -> float:
        """Python evaluation of :meth:`position_expr` at time ``t``."""
        m = self.motion
        if self.is_short:
            if self.animation_start <= t <= self.animation_end:
                p = (t - self.animation_start) / self.slide_duration
                return m.offscreen + m.travel * ease_out_quart(min(1.0, p))
            return m.offscreen

        if self.animation_start <= t <= self.slide_in_end:
            p = (t - self.animation_start) / self.slide_duration
            return m.offscreen + m.travel * ease_out_quart(p)
        if self.slide_in_end <= t <= self.slide_out_start:
            return m.rest
        if self.slide_out_start <= t <= self.animation_end:
            q = (t - self.slide_out_start) / self.slide_duration
            return m.rest - m.travel * ease_out_quart(q)
        return m.offscreen


@dataclass
class RenderInput:
    """One ``-i`` input of the encoder command."""

    path: Path
    options: List[str] = field(default_factory=list)

    def to_args(self) -> List[str]:
        return [*self.options, "-i", str(self.path)]
