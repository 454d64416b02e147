import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from tqdm import tqdm

from peetle.components.audio import AudioGenerator, TimelineAssembler
from peetle.components.config.settings import Settings
from peetle.models import DialogueLine, SpeechClip, TimelineInterval
from peetle.timeline import Timeline
from peetle.utils.logger import logger, time_log


@dataclass
class AudioResult:
    combined_path: Path
    intervals: List[TimelineInterval]
    clips: List[SpeechClip]

    @property
    def total_duration(self) -> float:
        return self.intervals[-1].end if self.intervals else 0.0


class AudioPhase:
    def __init__(
        self,
        settings: Settings,
        work_dir: Path,
        generator: Optional[AudioGenerator] = None,
        assembler: Optional[TimelineAssembler] = None,
    ):
        self.settings = settings
        self.work_dir = Path(work_dir)
        self.clip_dir = self.work_dir / "audio"
        self.generator = generator or AudioGenerator(settings, self.clip_dir)
        self.assembler = assembler or TimelineAssembler(
            settings.timing, settings.audio, settings.system
        )

    @time_log(logger)
    async def run(self, dialogue: Sequence[DialogueLine], timeline: Timeline) -> AudioResult:
        """Phase 1: synthesize every line in order, then build the combined track."""
        self.clip_dir.mkdir(parents=True, exist_ok=True)
        clips: List[SpeechClip] = []
        with tqdm(
            total=len(dialogue),
            desc="Speech Synthesis",
            unit="line",
            leave=False,
            disable=(os.getenv("TQDM_DISABLE") == "1" or not sys.stderr.isatty()),
        ) as pbar:
            for idx, line in enumerate(dialogue):
                name = self.settings.character(line.speaker).name
                pbar.set_description(f"Speech Synthesis ({name}, line {idx + 1})")
                clips.append(await self.generator.generate_audio(idx, line))
                pbar.update(1)

        combined, intervals = await self.assembler.assemble(
            clips,
            self.work_dir / "combined.mp3",
            texts=[line.text for line in dialogue],
            placeholders=[line.image_placeholder for line in dialogue],
        )
        timeline.add_intervals(
            intervals, {slot: c.name for slot, c in self.settings.characters.items()}
        )
        return AudioResult(combined_path=combined, intervals=intervals, clips=clips)
