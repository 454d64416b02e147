"""FFmpegコマンドを非同期実行するヘルパー。"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import subprocess
import time
from typing import List, Optional

from .logger import logger


async def _terminate(process: asyncio.subprocess.Process, grace: float) -> None:
    """SIGTERM を送り、猶予内に終わらなければ SIGKILL する。"""
    with contextlib.suppress(ProcessLookupError):
        process.terminate()
    try:
        await asyncio.wait_for(process.wait(), timeout=max(0.1, grace))
    except asyncio.TimeoutError:
        logger.error(f"Process did not terminate in {grace:.1f}s; killing PID={process.pid}...")
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()


async def run_ffmpeg_async(
    args: List[str],
    *,
    timeout: Optional[float] = None,
    error_log_level: int | None = logging.ERROR,
) -> subprocess.CompletedProcess:
    """
    FFmpeg/ffprobe を非同期で起動し、ログとタイムアウトを管理する。

    :param timeout: 秒数。超過するとプロセスを停止し ``subprocess.TimeoutExpired`` を送出する。
    :param error_log_level: 非0終了コード時に出力するログレベル。
        `None` を指定するとログ出力しない。
    """
    base = os.path.basename(str(args[0])) if args else "ffmpeg"
    cmd_str = " ".join(map(str, args))
    if os.getenv("FFMPEG_LOG_CMD", "0") == "1":
        logger.info(f"Running command: {cmd_str}")
    else:
        logger.debug(f"Running command: {cmd_str}")

    try:
        grace = float(os.getenv("FFMPEG_KILL_GRACE_SEC", "5"))
    except ValueError:
        grace = 5.0

    t0 = time.monotonic()
    try:
        process = await asyncio.create_subprocess_exec(
            *map(str, args),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        logger.error(
            f"{base} not found. Please ensure FFmpeg/FFprobe is installed and in your PATH."
        )
        raise
    logger.debug(f"Spawned PID={process.pid} for {base}")

    try:
        if timeout is not None and timeout > 0:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        else:
            stdout, stderr = await process.communicate()
    except asyncio.TimeoutError:
        logger.error(
            f"Command timed out after {timeout:.1f}s (PID={process.pid}). Sending terminate..."
        )
        await _terminate(process, grace)
        raise subprocess.TimeoutExpired(args, timeout)
    except asyncio.CancelledError:
        logger.warning(f"Task cancelled while running {base} (PID={process.pid}); terminating...")
        with contextlib.suppress(Exception):
            await asyncio.shield(_terminate(process, min(grace, 3.0)))
        raise

    stdout_str = stdout.decode(errors="ignore")
    stderr_str = stderr.decode(errors="ignore")

    rc = process.returncode if process.returncode is not None else 0
    dt = time.monotonic() - t0
    logger.debug(f"Command finished rc={rc} in {dt:.2f}s (PID={process.pid})")

    if rc != 0:
        if error_log_level is not None:
            logger.log(
                error_log_level,
                f"FFmpeg command failed rc={rc}. Command: {cmd_str}",
            )
            if stderr_str:
                logger.log(error_log_level, f"stderr:\n{stderr_str}")
        elif stderr_str:
            logger.debug(f"stderr:\n{stderr_str}")
        raise subprocess.CalledProcessError(
            rc,
            args,
            output=stdout_str,
            stderr=stderr_str,
        )

    if stderr_str:
        logger.debug(f"FFmpeg stderr (on success):\n{stderr_str}")

    return subprocess.CompletedProcess(args, rc, stdout_str, stderr_str)
