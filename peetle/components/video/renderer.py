# -*- coding: utf-8 -*-
import asyncio
import subprocess
from pathlib import Path
from typing import Iterable, Optional

from ...exceptions import RenderError
from ...utils.ffmpeg_runner import run_ffmpeg_async as _run_ffmpeg_async
from ...utils.logger import logger, time_log
from .render_plan import RenderPlan


def _remove_quietly(paths: Iterable[Path]) -> None:
    for p in paths:
        try:
            Path(p).unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning(f"Could not remove temporary file {p}: {e}")


class VideoRenderer:
    """RenderPlan を FFmpeg に渡して最終動画を書き出すレンダラー。

    失敗時（非0終了・タイムアウト・キャンセル・出力なし/0バイト）は
    途中まで書かれた出力を削除し、:class:`RenderError` を送出する。
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout: Optional[float] = None):
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout

    @time_log(logger)
    async def render(self, plan: RenderPlan) -> Path:
        if plan.consumed:
            raise RenderError("RenderPlan has already been executed.")
        plan.consumed = True

        output = Path(plan.output_path)
        output.parent.mkdir(parents=True, exist_ok=True)
        cmd = plan.command(self.ffmpeg_path)

        try:
            try:
                await _run_ffmpeg_async(cmd, timeout=self.timeout)
            except subprocess.CalledProcessError as e:
                tail = (e.stderr or "").strip().splitlines()[-5:]
                raise RenderError(
                    f"ffmpeg exited with code {e.returncode}: {' | '.join(tail) or 'no stderr'}"
                ) from e
            except subprocess.TimeoutExpired as e:
                raise RenderError(f"ffmpeg timed out after {e.timeout}s") from e
            except FileNotFoundError as e:
                raise RenderError(f"ffmpeg executable not found: {self.ffmpeg_path}") from e

            if not output.exists():
                raise RenderError(f"Video file was not created: {output}")
            size = output.stat().st_size
            if size == 0:
                raise RenderError(f"Video file is empty: {output}")
        except (RenderError, asyncio.CancelledError):
            _remove_quietly([output])
            raise
        finally:
            _remove_quietly(plan.temp_files)

        logger.kv_info(
            f"Video created successfully: {output} ({size} bytes)",
            kv_pairs={"Phase": "Render", "Bytes": size},
        )
        return output
