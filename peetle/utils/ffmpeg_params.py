"""FFmpegエンコードパラメータのデータクラス群。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List


@dataclass
class VideoParams:
    """縦型ショート動画の映像エンコード設定。"""

    width: int = 1080
    height: int = 1920
    fps: int = 30
    pix_fmt: str = "yuv420p"
    codec: str = "libx264"
    profile: str = "baseline"  # ブラウザ再生互換を優先
    level: str = "3.0"
    preset: str = "medium"
    crf: int = 23

    @property
    def aspect(self) -> str:
        return f"{self.width}:{self.height}"

    def to_ffmpeg_opts(self) -> List[str]:
        """現在の設定をFFmpegの引数へ変換する。"""
        return [
            "-c:v",
            self.codec,
            "-profile:v",
            self.profile,
            "-level",
            self.level,
            "-preset",
            self.preset,
            "-crf",
            str(self.crf),
            "-pix_fmt",
            self.pix_fmt,
            "-r",
            str(self.fps),
        ]


@dataclass
class AudioParams:
    """音声エンコードの設定値を保持する。"""

    sample_rate: int = 44100
    channels: int = 2
    codec: str = "libmp3lame"
    bitrate_kbps: int = 192
    # 最終動画に載せる音声
    output_codec: str = "aac"
    output_bitrate_kbps: int = 128

    @property
    def channel_layout(self) -> str:
        return "mono" if self.channels == 1 else "stereo"

    def to_ffmpeg_opts(self) -> List[str]:
        """中間音声（mp3）用の引数。"""
        return [
            "-c:a",
            self.codec,
            "-b:a",
            f"{self.bitrate_kbps}k",
            "-ar",
            str(self.sample_rate),
            "-ac",
            str(self.channels),
        ]

    def to_pcm_opts(self) -> List[str]:
        """連結用の中間音声（WAV, 16bit PCM）用の引数。フレーム詰め物が入らない。"""
        return [
            "-c:a",
            "pcm_s16le",
            "-ar",
            str(self.sample_rate),
            "-ac",
            str(self.channels),
        ]

    def to_output_opts(self) -> List[str]:
        """最終コンテナ（mp4）用の引数。"""
        return ["-c:a", self.output_codec, "-b:a", f"{self.output_bitrate_kbps}k"]
