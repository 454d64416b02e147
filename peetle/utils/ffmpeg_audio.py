# -*- coding: utf-8 -*-
"""FFmpeg を用いた音声処理ユーティリティ群。"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .ffmpeg_params import AudioParams
from .ffmpeg_probe import ProbeMode, probe_duration
from .ffmpeg_runner import run_ffmpeg_async as _run_ffmpeg_async
from .logger import logger


def _fmt(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".") or "0"


def build_mix_filter(
    delays: Sequence[float],
    volume: float,
) -> str:
    """各入力を増幅・遅延させて amix で重ねる filter_complex を作る。

    入力が1本のときは増幅のみ（adelay/amix なし）。
    """
    if len(delays) == 1:
        return f"[0:a]volume={_fmt(volume)}[aout]"

    parts = []
    for i, start in enumerate(delays):
        ms = int(round(start * 1000))
        parts.append(f"[{i}:a]volume={_fmt(volume)},adelay={ms}|{ms}[a{i}]")
    mix_in = "".join(f"[a{i}]" for i in range(len(delays)))
    parts.append(
        f"{mix_in}amix=inputs={len(delays)}:duration=longest:normalize=0[aout]"
    )
    return ";".join(parts)


async def mix_audio_tracks(
    audio_tracks: List[Tuple[str, float]],
    output_path: str,
    total_duration: float,
    audio_params: AudioParams,
    volume: float = 2.0,
    ffmpeg_path: str = "ffmpeg",
    timeout: Optional[float] = None,
) -> None:
    """複数の音声（パス, 開始秒）を指定位置に配置してミックスし、MP3で出力する。"""
    if not audio_tracks:
        raise ValueError("mix_audio_tracks requires at least one track")

    cmd = [ffmpeg_path, "-y", "-hide_banner", "-loglevel", "error"]
    for path, _ in audio_tracks:
        cmd.extend(["-i", str(path)])

    filter_complex = build_mix_filter([start for _, start in audio_tracks], volume)
    cmd.extend(["-filter_complex", filter_complex, "-map", "[aout]"])
    cmd.extend(audio_params.to_ffmpeg_opts())
    cmd.extend(["-t", _fmt(total_duration), str(output_path)])

    try:
        await _run_ffmpeg_async(cmd, timeout=timeout)
        logger.info(f"Successfully mixed {len(audio_tracks)} audio tracks to {output_path}")
    except subprocess.CalledProcessError as e:
        logger.error(f"Error mixing audio tracks: {e}")
        logger.debug(f"FFmpeg stderr:\n{e.stderr}")
        raise


async def create_silent_audio(
    output_path: str,
    duration: float,
    audio_params: AudioParams,
    ffmpeg_path: str = "ffmpeg",
    timeout: Optional[float] = None,
) -> None:
    """指定秒数の無音 WAV (16bit PCM) を生成する。"""
    cmd = [
        ffmpeg_path,
        "-y",
        "-hide_banner",
        "-loglevel",
        "error",
        "-f",
        "lavfi",
        "-i",
        f"anullsrc=r={audio_params.sample_rate}:cl={audio_params.channel_layout}",
        "-t",
        _fmt(duration),
    ]
    cmd.extend(audio_params.to_pcm_opts())
    cmd.append(str(output_path))
    try:
        await _run_ffmpeg_async(cmd, timeout=timeout)
        logger.debug(f"Created silent audio: {output_path} ({duration}s)")
    except subprocess.CalledProcessError as e:
        logger.error(f"Error creating silent audio file {output_path}: {e}")
        raise


async def boost_audio(
    input_path: str,
    output_path: str,
    volume: float,
    audio_params: AudioParams,
    ffmpeg_path: str = "ffmpeg",
    timeout: Optional[float] = None,
) -> None:
    """音量を一律に持ち上げ、WAV (16bit PCM) に揃えて書き出す。"""
    cmd = [
        ffmpeg_path,
        "-y",
        "-hide_banner",
        "-loglevel",
        "error",
        "-i",
        str(input_path),
        "-af",
        f"volume={_fmt(volume)}",
    ]
    cmd.extend(audio_params.to_pcm_opts())
    cmd.append(str(output_path))
    await _run_ffmpeg_async(cmd, timeout=timeout)


def write_concat_list(paths: Sequence[str | Path], list_path: str | Path) -> Path:
    """concat demuxer 用のリストファイルを書き出す。"""
    list_path = Path(list_path)
    with open(list_path, "w", encoding="utf-8") as f:
        for p in paths:
            safe = os.path.abspath(str(p)).replace("'", "'\\''")
            f.write(f"file '{safe}'\n")
    return list_path


async def concat_with_silence(
    input_paths: Sequence[str],
    output_path: str,
    gap: float,
    audio_params: AudioParams,
    volume: float = 2.0,
    ffmpeg_path: str = "ffmpeg",
    timeout: Optional[float] = None,
    work_dir: Optional[str] = None,
    ffprobe_path: str = "ffprobe",
    probe_timeout: Optional[float] = 30.0,
) -> Tuple[List[float], float]:
    """各クリップを増幅し、最後以外の後ろに ``gap`` 秒の無音を挟んで連結する。

    ミックスが失敗したときの代替経路。中間ファイルは PCM WAV で作り、
    最後の連結時に一度だけ MP3 へエンコードする。

    Returns:
        (各クリップ部分の実測秒数, 無音部分の実測秒数)。無音を挟まないときは ``gap``。
        呼び出し側はこの値で区間を組み直す。

    中間ファイルは成否にかかわらず削除する。
    """
    if not input_paths:
        raise ValueError("concat_with_silence requires at least one input")

    out = Path(output_path)
    base_dir = Path(work_dir) if work_dir else out.parent
    base_dir.mkdir(parents=True, exist_ok=True)
    stem = out.stem

    temp_files: List[Path] = []
    parts: List[Path] = []
    part_durations: List[float] = []
    gap_duration = gap
    try:
        silence: Optional[Path] = None
        if len(input_paths) > 1 and gap > 0:
            silence = base_dir / f"{stem}_silence.wav"
            temp_files.append(silence)
            await create_silent_audio(
                str(silence), gap, audio_params, ffmpeg_path=ffmpeg_path, timeout=timeout
            )
            gap_duration = await probe_duration(
                silence, mode=ProbeMode.STRICT, timeout=probe_timeout, ffprobe_path=ffprobe_path
            )

        for i, src in enumerate(input_paths):
            boosted = base_dir / f"{stem}_part{i:03d}.wav"
            temp_files.append(boosted)
            await boost_audio(
                src, str(boosted), volume, audio_params, ffmpeg_path=ffmpeg_path, timeout=timeout
            )
            part_durations.append(
                await probe_duration(
                    boosted,
                    mode=ProbeMode.STRICT,
                    timeout=probe_timeout,
                    ffprobe_path=ffprobe_path,
                )
            )
            parts.append(boosted)
            if silence is not None and i < len(input_paths) - 1:
                parts.append(silence)

        list_path = base_dir / f"{stem}_concat.txt"
        temp_files.append(list_path)
        write_concat_list(parts, list_path)

        cmd = [
            ffmpeg_path,
            "-y",
            "-hide_banner",
            "-loglevel",
            "error",
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            str(list_path),
        ]
        cmd.extend(audio_params.to_ffmpeg_opts())
        cmd.append(str(out))
        await _run_ffmpeg_async(cmd, timeout=timeout)
        logger.info(f"Concatenated {len(input_paths)} clips with {gap}s gaps to {out}")
    finally:
        for tmp in temp_files:
            try:
                tmp.unlink()
            except FileNotFoundError:
                pass
    return part_durations, gap_duration
