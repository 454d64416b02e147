"""音声・映像生成フェーズを統括するパイプライン実装。"""

import secrets
import shutil
import subprocess
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .components.assets import AssetResolver
from .components.config.settings import Settings, load_settings
from .components.images import ImageStore
from .components.pipeline_phases import AudioPhase, RenderPhase
from .components.script.loader import load_dialogue, load_script_overrides
from .exceptions import PipelineError, ValidationError
from .models import DialogueLine
from .timeline import Timeline
from .utils.ffmpeg_probe import ProbeMode, probe_duration
from .utils.logger import logger, time_log


def make_work_dir(root: Path) -> Path:
    """Create a per-request directory ``gen_<YYYYmmdd_HHMMSS>_<hex>`` under ``root``."""
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    path = Path(root) / f"gen_{stamp}_{secrets.token_hex(4)}"
    path.mkdir(parents=True, exist_ok=False)
    return path


class GenerationPipeline:
    """台詞スクリプトから音声合成・タイムライン構築・レンダリングまでを連携させる。"""

    def __init__(
        self,
        settings: Settings,
        image_store: Optional[ImageStore] = None,
        asset_resolver: Optional[AssetResolver] = None,
    ):
        self.settings = settings
        self.image_store = image_store or ImageStore(settings.images)
        self.asset_resolver = asset_resolver or AssetResolver(settings)
        self.timeline = Timeline()
        self.stats: Dict[str, Any] = {
            "phases": {},
            "total_duration": 0.0,
            "lines": 0,
            "video_duration": 0.0,
        }

    async def _run_phase(self, phase_name: str, func, *args, **kwargs):
        """各フェーズを実行し処理時間を記録する。"""
        start_time = time.time()
        logger.kv_info(
            f"--- Starting Phase: {phase_name} ---",
            kv_pairs={"Event": "PhaseStart", "Phase": phase_name},
        )
        result = await func(*args, **kwargs)
        duration = time.time() - start_time
        self.stats["phases"][phase_name] = {"duration": duration}
        logger.kv_info(
            f"--- Finished Phase: {phase_name}. Duration: {duration:.2f} seconds ---",
            kv_pairs={
                "Event": "PhaseFinish",
                "Phase": phase_name,
                "Duration": f"{duration:.2f}s",
            },
        )
        return result

    @time_log(logger)
    async def run(self, dialogue: List[DialogueLine], output_path: str) -> Path:
        """動画生成パイプライン全体を実行する。

        Args:
            dialogue: 発話順の台詞リスト。
            output_path: 最終出力する動画ファイルのパス。

        Returns:
            書き出された動画のパス。失敗時は例外を送出し、パスは返さない。
        """
        if not dialogue:
            raise ValidationError("Dialogue is empty.")
        pipeline_start_time = time.time()
        self.stats["lines"] = len(dialogue)

        assets = self.asset_resolver.resolve_and_validate()
        work_dir = make_work_dir(Path(self.settings.system.work_root))
        logger.kv_info(
            f"Using work directory: {work_dir}",
            kv_pairs={"WorkDir": str(work_dir)},
        )
        try:
            audio_phase = AudioPhase(self.settings, work_dir)
            audio = await self._run_phase(
                "AudioPhase", audio_phase.run, dialogue, self.timeline
            )

            render_phase = RenderPhase(
                self.settings, work_dir, assets, image_store=self.image_store
            )
            final_path = await self._run_phase(
                "RenderPhase",
                render_phase.run,
                dialogue,
                audio,
                Path(output_path),
                self.timeline,
            )
        except (PipelineError, ValidationError):
            raise
        except (OSError, subprocess.SubprocessError, ValueError) as e:
            raise PipelineError(f"Video generation failed: {e}") from e
        finally:
            if self.settings.system.keep_work_dir:
                logger.info(f"Keeping work directory {work_dir}")
            else:
                shutil.rmtree(work_dir, ignore_errors=True)

        # statistics only; a failed probe here must not fail the run
        self.stats["video_duration"] = await probe_duration(
            final_path,
            mode=ProbeMode.FALLBACK,
            timeout=self.settings.system.probe_timeout,
            ffprobe_path=self.settings.system.ffprobe_path,
        )
        self.stats["audio_duration"] = audio.total_duration
        self.stats["total_duration"] = time.time() - pipeline_start_time
        self._log_final_summary()
        logger.kv_info(
            f"Final video saved to {final_path}",
            kv_pairs={"OutputPath": str(final_path)},
        )
        return final_path

    def save_reports(
        self,
        output_path: str,
        timeline_format: Optional[str] = None,
        subtitle_format: Optional[str] = None,
    ) -> List[Path]:
        """Write the timeline (md/csv) and subtitle files (srt/ass) beside the video."""
        base = Path(output_path)
        written: List[Path] = []
        if timeline_format in ("md", "both"):
            written.append(base.with_suffix(".md"))
            self.timeline.save_as_md(written[-1])
        if timeline_format in ("csv", "both"):
            written.append(base.with_suffix(".csv"))
            self.timeline.save_as_csv(written[-1])
        if subtitle_format in ("srt", "both"):
            written.append(base.with_suffix(".srt"))
            self.timeline.save_subtitles(written[-1], format="srt")
        if subtitle_format in ("ass", "both"):
            written.append(base.with_suffix(".ass"))
            self.timeline.save_subtitles(written[-1], format="ass")
        for path in written:
            logger.kv_info(f"Report saved to {path}", kv_pairs={"Report": str(path)})
        return written

    def _log_final_summary(self):
        """Log aggregated statistics after the pipeline completes."""
        summary_kv = {
            "Event": "PipelineSummary",
            "TotalDuration": f"{self.stats['total_duration']:.2f}s",
            "Lines": self.stats["lines"],
            "AudioDuration": f"{self.stats.get('audio_duration', 0.0):.2f}s",
            "VideoDuration": f"{self.stats['video_duration']:.2f}s",
        }
        for phase_name, data in self.stats["phases"].items():
            summary_kv[f"Phase{phase_name}Duration"] = f"{data['duration']:.2f}s"
        logger.kv_info("Pipeline Summary", kv_pairs=summary_kv)


async def run_generation(
    script_path: str,
    output_path: str,
    config_path: Optional[str] = None,
    images_dir: Optional[str] = None,
    image_map: Optional[Mapping[str, str]] = None,
    captions_mode: Optional[str] = None,
    timeline_format: Optional[str] = None,
    subtitle_file_format: Optional[str] = None,
) -> Path:
    """動画生成を高レベルに実行するユーティリティ関数。"""
    overrides: Dict[str, Any] = load_script_overrides(script_path)
    if captions_mode:
        overrides.setdefault("captions", {})["mode"] = captions_mode
    if images_dir:
        overrides.setdefault("images", {})["dir"] = images_dir

    settings = load_settings(config_path, overrides)
    dialogue = load_dialogue(script_path, settings)

    image_store = ImageStore(
        settings.images,
        mapping={k: Path(v) for k, v in (image_map or {}).items()},
    )
    pipeline = GenerationPipeline(settings, image_store=image_store)
    final_path = await pipeline.run(dialogue, output_path)
    pipeline.save_reports(str(final_path), timeline_format, subtitle_file_format)
    return final_path
