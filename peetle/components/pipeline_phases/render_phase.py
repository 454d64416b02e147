from pathlib import Path
from typing import Optional, Sequence

from peetle.components.assets import AssetPaths
from peetle.components.config.settings import Settings
from peetle.components.images import ImageStore
from peetle.components.script.loader import placeholders_in
from peetle.components.subtitles.word_timing import WordTimingEstimator
from peetle.components.video.overlay_planner import OverlayPlanner
from peetle.components.video.render_plan import RenderPlanBuilder
from peetle.components.video.renderer import VideoRenderer
from peetle.models import DialogueLine
from peetle.timeline import Timeline
from peetle.utils.logger import logger, time_log

from .audio_phase import AudioResult


class RenderPhase:
    """Phase 2: word timing, overlay planning, plan building and the encoder run."""

    def __init__(
        self,
        settings: Settings,
        work_dir: Path,
        assets: AssetPaths,
        image_store: Optional[ImageStore] = None,
        renderer: Optional[VideoRenderer] = None,
    ):
        self.settings = settings
        self.work_dir = Path(work_dir)
        self.assets = assets
        self.image_store = image_store or ImageStore(settings.images)
        self.renderer = renderer or VideoRenderer(
            ffmpeg_path=settings.system.ffmpeg_path,
            timeout=settings.system.render_timeout,
        )
        self.estimator = WordTimingEstimator()
        self.planner = OverlayPlanner(
            settings.timing,
            settings.characters,
            settings.images,
            assets.portraits,
            frame_width=settings.video.width,
        )

    @time_log(logger)
    async def run(
        self,
        dialogue: Sequence[DialogueLine],
        audio: AudioResult,
        output_path: Path,
        timeline: Timeline,
    ) -> Path:
        tokens = self.estimator.estimate(audio.intervals)
        character_windows = self.planner.plan(audio.intervals)

        image_dir = self.work_dir / "images"
        image_dir.mkdir(parents=True, exist_ok=True)
        placeholders = placeholders_in(list(dialogue))
        image_map = self.image_store.resolve_all(placeholders, image_dir)
        image_windows = self.planner.plan_images(tokens, image_map, audio.total_duration)
        for w in image_windows:
            timeline.add_image(w.identity, w.animation_start, w.animation_end)

        logger.kv_info(
            "Overlay plan ready",
            kv_pairs={
                "Phase": "Render",
                "Words": len(tokens),
                "CharacterWindows": len(character_windows),
                "Images": f"{len(image_windows)}/{len(placeholders)}",
            },
        )

        plan = RenderPlanBuilder(self.settings, self.work_dir).build(
            background=self.assets.background,
            combined_audio=audio.combined_path,
            character_sources=self.assets.portraits,
            overlay_windows=character_windows,
            word_tokens=tokens,
            image_windows=image_windows,
            intervals=audio.intervals,
            total_duration=audio.total_duration,
            output_path=Path(output_path),
        )
        return await self.renderer.render(plan)
