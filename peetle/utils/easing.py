"""Quartic ease-out helpers, evaluated in Python and emitted as ffmpeg expressions.

Both forms must stay in lockstep: the expression strings are what the encoder
evaluates, the Python versions are what planning and tests reason about.
"""

from __future__ import annotations


def fmt_num(value: float) -> str:
    """Format a number compactly for ffmpeg expressions (``0.2`` rather than ``0.2000``)."""
    text = f"{float(value):.4f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def ease_out_quart(progress: float) -> float:
    """``1 - (1-p)^4`` with ``p`` clamped to [0, 1]."""
    p = min(1.0, max(0.0, progress))
    return 1.0 - (1.0 - p) ** 4


def ease_out_quart_expr(progress_expr: str) -> str:
    return f"(1-pow(1-{progress_expr},4))"


def progress_expr(start: float, duration: float, clamp: bool = False) -> str:
    """Linear progress in ``t`` from ``start`` over ``duration`` seconds."""
    raw = f"(t-{fmt_num(start)})/{fmt_num(duration)}"
    if clamp:
        return f"min(1,{raw})"
    return f"({raw})"


def affine_expr(base: float, delta: float, factor_expr: str) -> str:
    """``base + delta * factor`` with the sign folded into the operator."""
    if delta < 0:
        return f"{fmt_num(base)}-{fmt_num(-delta)}*{factor_expr}"
    return f"{fmt_num(base)}+{fmt_num(delta)}*{factor_expr}"
