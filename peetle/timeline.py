"""タイムライン情報を管理しレポートや字幕ファイルを生成するモジュール。"""

import csv
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pysubs2

from peetle.models import Speaker, TimelineInterval
from peetle.utils.subtitle_text import (
    is_effective_caption_text,
    normalize_caption_text,
)


def format_timestamp(seconds: float) -> str:
    """秒数を HH:MM:SS.mmm 形式の文字列に変換する。"""
    total_ms = int(round(max(seconds, 0.0) * 1000))
    s, ms = divmod(total_ms, 1000)
    m, s = divmod(s, 60)
    h, m = divmod(m, 60)
    return f"{h:02}:{m:02}:{s:02}.{ms:03}"


class Timeline:
    """台詞区間と画像表示を記録し、タイムラインや字幕を出力する。"""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    @property
    def end_time(self) -> float:
        if not self.events:
            return 0.0
        return max(e["start_time"] + e["duration"] for e in self.events)

    def add_event(
        self,
        description: str,
        start_time: float,
        duration: float,
        text: Optional[str] = None,
        kind: str = "line",
    ):
        """タイムラインに新しいイベントを追加する（開始時刻順を保つ）。"""
        effective_text: Optional[str]
        if is_effective_caption_text(text):
            effective_text = normalize_caption_text(text)
        else:
            effective_text = None
        event = {
            "start_time": float(start_time),
            "duration": float(duration),
            "description": description,
            "text": effective_text,
            "type": kind,
        }
        idx = len(self.events)
        while idx > 0 and self.events[idx - 1]["start_time"] > event["start_time"]:
            idx -= 1
        self.events.insert(idx, event)

    def add_intervals(
        self,
        intervals: Sequence[TimelineInterval],
        speaker_names: Mapping[Speaker, str],
    ) -> None:
        """音声区間ごとに1イベントを追加する。"""
        for iv in intervals:
            name = speaker_names.get(iv.speaker, iv.speaker.value)
            self.add_event(f"{name}: {iv.source_text}", iv.start, iv.duration, text=iv.source_text)

    def add_image(self, placeholder: str, start_time: float, end_time: float) -> None:
        self.add_event(
            f"Image ({placeholder})", start_time, end_time - start_time, kind="image"
        )

    def save_as_md(self, output_path: Path):
        """タイムラインを Markdown 形式で保存する。"""
        with open(output_path, "w", encoding="utf-8") as f:
            f.write("# Video Timeline\n\n")
            for event in self.events:
                timestamp = format_timestamp(event["start_time"])
                f.write(f"- {timestamp} - {event['description']}\n")

    def save_as_csv(self, output_path: Path):
        """タイムラインを CSV 形式で保存する。"""
        with open(output_path, "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(["start_time", "duration", "type", "description"])
            for event in self.events:
                writer.writerow(
                    [
                        format_timestamp(event["start_time"]),
                        f"{event['duration']:.3f}",
                        event["type"],
                        event["description"],
                    ]
                )

    def save_subtitles(self, output_path: Path, format: str):
        """字幕ファイルを SRT または ASS 形式で保存する。"""
        subs = pysubs2.SSAFile()
        target_format = (format or "srt").lower()
        for event in self.events:
            text = event.get("text")
            if not is_effective_caption_text(text):
                continue
            start_time = int(round(event["start_time"] * 1000))
            end_time = int(round((event["start_time"] + event["duration"]) * 1000))
            payload = normalize_caption_text(str(text))
            if target_format == "ass":
                payload = payload.replace("\n", r"\N")
            subs.append(pysubs2.SSAEvent(start=start_time, end=end_time, text=payload))
        subs.save(str(output_path), format_=target_format)
