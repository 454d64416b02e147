"""Time windows and slide animations for character and image overlays."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from ...models import (
    OverlayKind,
    OverlayWindow,
    SlideMotion,
    Speaker,
    TimelineInterval,
    WordToken,
)
from ...utils.logger import logger
from ..config.settings import CharacterSettings, ImageSettings, TimingSettings


def make_window(
    kind: OverlayKind,
    identity: str,
    source: Path,
    animation_start: float,
    animation_end: float,
    slide: float,
    motion: SlideMotion,
    box: tuple,
) -> OverlayWindow:
    return OverlayWindow(
        kind=kind,
        identity=identity,
        source=Path(source),
        animation_start=animation_start,
        slide_in_end=animation_start + slide,
        slide_out_start=animation_end - slide,
        animation_end=animation_end,
        slide_duration=slide,
        motion=motion,
        box=(int(box[0]), int(box[1])),
    )


class OverlayPlanner:
    def __init__(
        self,
        timing: TimingSettings,
        characters: Mapping[Speaker, CharacterSettings],
        images: Optional[ImageSettings] = None,
        portraits: Optional[Mapping[Speaker, Path]] = None,
        frame_width: int = 1080,
    ):
        self.timing = timing
        self.characters = dict(characters)
        self.images = images or ImageSettings()
        self.frame_width = frame_width
        self.portraits: Dict[Speaker, Path] = {
            slot: Path(portraits[slot]) if portraits and slot in portraits else Path(c.portrait)
            for slot, c in self.characters.items()
        }

    def character_motion(self, speaker: Speaker) -> SlideMotion:
        c = self.characters[speaker]
        return SlideMotion(
            axis="x", offscreen=c.offscreen_x(self.frame_width), rest=c.rest_x, cross=c.y
        )

    def image_motion(self) -> SlideMotion:
        # drops in from above the frame, centred horizontally
        return SlideMotion(
            axis="y",
            offscreen=-float(self.images.max_height),
            rest=float(self.images.rest_y),
            cross="(W-w)/2",
        )

    def plan(self, intervals: Sequence[TimelineInterval]) -> List[OverlayWindow]:
        """One character window per interval, padded by pre/post roll."""
        windows: List[OverlayWindow] = []
        t = self.timing
        for iv in intervals:
            c = self.characters[iv.speaker]
            windows.append(
                make_window(
                    OverlayKind.CHARACTER,
                    c.name,
                    self.portraits[iv.speaker],
                    max(0.0, iv.start - t.pre_roll),
                    iv.end + t.post_roll,
                    t.character_slide,
                    self.character_motion(iv.speaker),
                    (c.box, c.box),
                )
            )
        return windows

    def plan_images(
        self,
        word_tokens: Sequence[WordToken],
        image_map: Mapping[str, Optional[Path]],
        total_duration: float,
    ) -> List[OverlayWindow]:
        """Back-to-back image windows starting at each placeholder's first word.

        Placeholders without an image are dropped before windows are computed,
        so a resolved image fills the time up to the next resolved one.
        """
        triggers = sorted(
            (tok for tok in word_tokens if tok.image_placeholder),
            key=lambda tok: tok.start,
        )
        resolved = []
        for tok in triggers:
            path = image_map.get(tok.image_placeholder)
            if path is None:
                logger.debug(f"[Overlay] no image for placeholder '{tok.image_placeholder}'")
                continue
            resolved.append((tok, Path(path)))

        t = self.timing
        box = (self.images.max_width, self.images.max_height)
        windows: List[OverlayWindow] = []
        prev_end = 0.0
        for i, (tok, path) in enumerate(resolved):
            start = max(tok.start, prev_end)
            nxt = resolved[i + 1][0].start if i + 1 < len(resolved) else total_duration
            end = max(nxt, start + t.image_min_duration)
            windows.append(
                make_window(
                    OverlayKind.IMAGE,
                    tok.image_placeholder,
                    path,
                    start,
                    end,
                    t.image_slide,
                    self.image_motion(),
                    box,
                )
            )
            prev_end = end
        return windows
