"""Place independently synthesized clips on one audio track.

クリップを順番に並べ、間に一定のギャップを挟んで1本の音声にまとめる。
区間（TimelineInterval）は常に書き出した音声と一致する。concat 経路では
中間ファイルを測り直して区間を組み直す。
"""

from __future__ import annotations

import subprocess
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ...exceptions import RenderError
from ...models import SpeechClip, TimelineInterval
from ...utils.ffmpeg_audio import concat_with_silence, mix_audio_tracks
from ...utils.ffmpeg_params import AudioParams
from ...utils.ffmpeg_probe import ProbeMode, probe_duration
from ...utils.logger import logger, time_log
from ..config.settings import SystemSettings, TimingSettings


def layout_intervals(
    clips: Sequence[SpeechClip],
    gap: float,
    texts: Optional[Sequence[str]] = None,
    placeholders: Optional[Sequence[Optional[str]]] = None,
) -> List[TimelineInterval]:
    """Lay measured clips end to end with ``gap`` seconds between them.

    ``start[0] == 0`` and ``start[i+1] == end[i] + gap``. Every clip must
    already carry ``measured_duration``.
    """
    intervals: List[TimelineInterval] = []
    cursor = 0.0
    for i, clip in enumerate(clips):
        if clip.measured_duration is None:
            raise ValueError(f"clip {clip.source_line_index} has not been measured")
        start = 0.0 if i == 0 else cursor + gap
        end = start + clip.measured_duration
        intervals.append(
            TimelineInterval(
                speaker=clip.speaker,
                start=start,
                end=end,
                source_text=texts[i] if texts is not None else "",
                image_placeholder=placeholders[i] if placeholders is not None else None,
            )
        )
        cursor = end
    return intervals


class TimelineAssembler:
    def __init__(
        self,
        timing: TimingSettings,
        audio_params: AudioParams,
        system: Optional[SystemSettings] = None,
    ):
        self.gap = timing.gap
        self.volume = timing.volume_boost
        self.audio_params = audio_params
        self.system = system or SystemSettings()

    async def measure(self, clips: Sequence[SpeechClip]) -> None:
        """Probe every clip that has no measured duration yet (strict)."""
        for clip in clips:
            if clip.measured_duration is not None:
                continue
            clip.measured_duration = await probe_duration(
                clip.audio_path,
                mode=ProbeMode.STRICT,
                timeout=self.system.probe_timeout,
                ffprobe_path=self.system.ffprobe_path,
            )
            logger.debug(
                f"[Timeline] clip #{clip.source_line_index} ({clip.speaker.value}) "
                f"= {clip.measured_duration:.3f}s"
            )

    def _relayout(
        self,
        clips: Sequence[SpeechClip],
        part_durations: Sequence[float],
        gap_duration: float,
        texts: Optional[Sequence[str]],
        placeholders: Optional[Sequence[Optional[str]]],
    ) -> List[TimelineInterval]:
        """Rebuild intervals from what the concat path actually wrote."""
        parts = [replace(c, measured_duration=d) for c, d in zip(clips, part_durations)]
        drift = max(abs(p.measured_duration - c.measured_duration) for p, c in zip(parts, clips))
        if drift > 0.001 or abs(gap_duration - self.gap) > 0.001:
            logger.debug(
                f"[Timeline] concat parts differ from probes (max {drift:.3f}s, "
                f"gap {gap_duration:.3f}s); intervals follow the written audio"
            )
        return layout_intervals(parts, gap_duration, texts, placeholders)

    @time_log(logger)
    async def assemble(
        self,
        clips: Sequence[SpeechClip],
        output_path: Path,
        texts: Optional[Sequence[str]] = None,
        placeholders: Optional[Sequence[Optional[str]]] = None,
    ) -> Tuple[Path, List[TimelineInterval]]:
        """Combine ``clips`` into ``output_path`` and return it with the intervals.

        First tries a single ``amix`` with per-clip ``adelay``; if that fails the
        clips are concatenated with generated silence instead.
        """
        if not clips:
            raise ValueError("TimelineAssembler.assemble requires at least one clip")

        await self.measure(clips)
        intervals = layout_intervals(clips, self.gap, texts, placeholders)
        total = intervals[-1].end
        output_path = Path(output_path)

        tracks = [(str(c.audio_path), iv.start) for c, iv in zip(clips, intervals)]
        try:
            await mix_audio_tracks(
                tracks,
                str(output_path),
                total_duration=total,
                audio_params=self.audio_params,
                volume=self.volume,
                ffmpeg_path=self.system.ffmpeg_path,
                timeout=self.system.mix_timeout,
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as e:
            logger.kv_warning(
                f"amix failed ({e}); falling back to concat with {self.gap}s silence",
                kv_pairs={"Phase": "Audio", "Strategy": "concat", "Clips": len(clips)},
            )
            try:
                part_durations, gap_duration = await concat_with_silence(
                    [str(c.audio_path) for c in clips],
                    str(output_path),
                    gap=self.gap,
                    audio_params=self.audio_params,
                    volume=self.volume,
                    ffmpeg_path=self.system.ffmpeg_path,
                    timeout=self.system.mix_timeout,
                    ffprobe_path=self.system.ffprobe_path,
                    probe_timeout=self.system.probe_timeout,
                )
            except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as e2:
                raise RenderError(f"Could not combine {len(clips)} audio clips: {e2}") from e2
            intervals = self._relayout(clips, part_durations, gap_duration, texts, placeholders)
            total = intervals[-1].end

        logger.kv_info(
            f"Combined {len(clips)} clips into {output_path.name} ({total:.2f}s)",
            kv_pairs={"Phase": "Audio", "Clips": len(clips), "Duration": f"{total:.2f}s"},
        )
        return output_path, intervals
