# -*- coding: utf-8 -*-
"""Assemble encoder inputs, the filter graph and output arguments into a RenderPlan."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from ...models import OverlayWindow, RenderInput, Speaker, TimelineInterval, WordToken
from ...utils.easing import fmt_num
from ...utils.ffmpeg_params import AudioParams, VideoParams
from ...utils.logger import logger
from ..config.settings import Settings
from ..subtitles.captions import CaptionRenderer
from .filter_graph import FilterGraph, filter_call

OUTPUT_LABEL = "v"
# above this the graph goes to a file instead of argv
INLINE_GRAPH_LIMIT = 100_000


@dataclass
class RenderPlan:
    """Everything the encoder needs for one render. Consumed once."""

    inputs: List[RenderInput]
    graph: FilterGraph
    output_label: str
    output_path: Path
    duration: float
    video: VideoParams
    audio: AudioParams
    audio_input_index: int = 1
    graph_script: Optional[Path] = None
    temp_files: List[Path] = field(default_factory=list)
    consumed: bool = False

    def filter_complex(self) -> str:
        return self.graph.serialize()

    def command(self, ffmpeg_path: str = "ffmpeg") -> List[str]:
        cmd = [ffmpeg_path, "-y", "-hide_banner", "-loglevel", "error"]
        for inp in self.inputs:
            cmd.extend(inp.to_args())
        if self.graph_script is not None:
            cmd.extend(["-filter_complex_script", str(self.graph_script)])
        else:
            cmd.extend(["-filter_complex", self.filter_complex()])
        cmd.extend(["-map", f"[{self.output_label}]", "-map", f"{self.audio_input_index}:a"])
        cmd.extend(self.video.to_ffmpeg_opts())
        cmd.extend(self.audio.to_output_opts())
        cmd.extend(["-movflags", "+faststart", "-t", fmt_num(self.duration)])
        cmd.append(str(self.output_path))
        return cmd


class RenderPlanBuilder:
    def __init__(self, settings: Settings, work_dir: Path):
        self.settings = settings
        self.video = settings.video
        self.work_dir = Path(work_dir)
        self.captions = CaptionRenderer(settings.captions)

    def background_filters(self) -> List[str]:
        w, h = self.video.width, self.video.height
        return [
            filter_call("scale", w, h, force_original_aspect_ratio="increase"),
            filter_call("crop", w, h),
            "setpts=PTS-STARTPTS",
        ]

    def _overlay_stage(
        self, graph: FilterGraph, base: str, source_label: str, window: OverlayWindow
    ) -> str:
        bw, bh = window.box
        scaled = graph.add(
            source_label,
            filter_call("scale", bw, bh, force_original_aspect_ratio="decrease"),
            prefix=f"{window.kind.value}_scaled",
        )
        return graph.add(
            [base, scaled],
            filter_call(
                "overlay",
                x=f"'{window.x_expr}'",
                y=f"'{window.y_expr}'",
                enable=f"'{window.enable_expr()}'",
            ),
            prefix="ov",
        )

    def build(
        self,
        background: Path,
        combined_audio: Path,
        character_sources: Mapping[Speaker, Path],
        overlay_windows: Sequence[OverlayWindow],
        word_tokens: Sequence[WordToken],
        image_windows: Sequence[OverlayWindow],
        intervals: Sequence[TimelineInterval],
        total_duration: float,
        output_path: Path,
    ) -> RenderPlan:
        if total_duration <= 0:
            raise ValueError(f"total_duration must be positive, got {total_duration}")

        inputs: List[RenderInput] = [
            RenderInput(Path(background), ["-stream_loop", "-1"]),
            RenderInput(Path(combined_audio)),
        ]
        # one encoder input per distinct source; portraits first in slot order
        source_index: Dict[Path, int] = {}

        def register(path: Path) -> int:
            path = Path(path)
            if path not in source_index:
                source_index[path] = len(inputs)
                inputs.append(RenderInput(path))
            return source_index[path]

        for slot in sorted(character_sources, key=lambda s: s.value):
            register(character_sources[slot])

        char_windows = sorted(overlay_windows, key=lambda w: w.animation_start)
        img_windows = sorted(image_windows, key=lambda w: w.animation_start)
        for window in [*char_windows, *img_windows]:
            register(window.source)

        graph = FilterGraph()
        current = graph.add("0:v", self.background_filters(), output="bg")

        # every window gets its own split branch and scale node
        branches: Dict[int, List[str]] = {}
        uses: Dict[int, int] = {}
        for window in [*char_windows, *img_windows]:
            idx = source_index[Path(window.source)]
            uses[idx] = uses.get(idx, 0) + 1
        for idx, count in uses.items():
            branches[idx] = graph.split(f"{idx}:v", count, prefix=f"src{idx}_")

        for window in [*char_windows, *img_windows]:
            idx = source_index[Path(window.source)]
            current = self._overlay_stage(graph, current, branches[idx].pop(0), window)

        temp_files: List[Path] = []
        caption_label, caption_files = self.captions.add_to_graph(
            graph, current, word_tokens, intervals, self.work_dir, output=OUTPUT_LABEL
        )
        temp_files.extend(caption_files)
        if caption_label != OUTPUT_LABEL:
            graph.add(caption_label, "null", output=OUTPUT_LABEL)

        plan = RenderPlan(
            inputs=inputs,
            graph=graph,
            output_label=OUTPUT_LABEL,
            output_path=Path(output_path),
            duration=total_duration,
            video=self.video,
            audio=self.settings.audio,
            temp_files=temp_files,
        )

        text = plan.filter_complex()
        if len(text) > INLINE_GRAPH_LIMIT:
            script = self.work_dir / "filter_complex.txt"
            script.write_text(text, encoding="utf-8")
            plan.graph_script = script
            plan.temp_files.append(script)

        logger.kv_info(
            "Render plan built",
            kv_pairs={
                "Phase": "Render",
                "Inputs": len(inputs),
                "Stages": len(graph),
                "CharacterWindows": len(char_windows),
                "ImageWindows": len(img_windows),
                "Captions": "word" if self.captions.use_word_mode(word_tokens) else "line",
                "Duration": f"{total_duration:.2f}s",
            },
        )
        return plan
