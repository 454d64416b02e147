"""ffprobe を利用した長さ取得ヘルパー。"""

from __future__ import annotations

import enum
import json
import subprocess
from pathlib import Path
from typing import Dict, Optional, Tuple

from ..exceptions import ProbeError
from .ffmpeg_runner import run_ffmpeg_async
from .logger import logger

DEFAULT_FALLBACK_DURATION = 3.0

_duration_memo: Dict[Tuple[str, int, int], float] = {}


class ProbeMode(str, enum.Enum):
    """長さ取得に失敗したときの振る舞い。"""

    STRICT = "strict"  # ProbeError を送出する（タイミング計算用）
    FALLBACK = "fallback"  # 既定値を返す（統計などの推定用）


def _memo_key(path: Path) -> Optional[Tuple[str, int, int]]:
    try:
        st = path.stat()
    except OSError:
        return None
    return (str(path.resolve()), int(st.st_mtime_ns), st.st_size)


def parse_duration(stdout: str) -> float:
    """``-of json`` 形式の出力から format.duration を取り出す。"""
    info = json.loads(stdout)
    duration = float(info["format"]["duration"])
    if duration != duration or duration <= 0:  # NaN / 0 / negative
        raise ValueError(f"invalid duration {duration!r}")
    return duration


async def probe_duration(
    file_path: str | Path,
    *,
    mode: ProbeMode = ProbeMode.STRICT,
    fallback: float = DEFAULT_FALLBACK_DURATION,
    timeout: Optional[float] = 30.0,
    ffprobe_path: str = "ffprobe",
) -> float:
    """メディアファイルの再生時間(秒)を返す。

    Args:
        file_path: 対象ファイル。
        mode: ``STRICT`` なら失敗時に :class:`ProbeError`、``FALLBACK`` なら ``fallback`` を返す。
        fallback: ``FALLBACK`` モードで使う既定秒数。
        timeout: ffprobe の待ち時間上限（秒）。
        ffprobe_path: ffprobe 実行ファイル。
    """
    path = Path(file_path)
    key = _memo_key(path)
    if key is not None and key in _duration_memo:
        return _duration_memo[key]

    cmd = [
        ffprobe_path,
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "json",
        str(path),
    ]
    try:
        result = await run_ffmpeg_async(cmd, timeout=timeout)
        duration = parse_duration(result.stdout)
    except (
        subprocess.CalledProcessError,
        subprocess.TimeoutExpired,
        FileNotFoundError,
        json.JSONDecodeError,
        KeyError,
        TypeError,
        ValueError,
    ) as e:
        if mode is ProbeMode.FALLBACK:
            logger.warning(
                f"Could not probe duration of {path}; using fallback {fallback:.2f}s ({e})"
            )
            return fallback
        raise ProbeError(f"Failed to get duration for {path}: {e}") from e

    if key is not None:
        _duration_memo[key] = duration
    return duration


def clear_duration_memo() -> None:
    """Clear memoised durations (for tests)."""
    _duration_memo.clear()
