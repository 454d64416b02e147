import asyncio
import json
import subprocess

import pytest

from peetle.exceptions import ProbeError
from peetle.utils import ffmpeg_probe
from peetle.utils.ffmpeg_probe import ProbeMode, parse_duration, probe_duration


def _completed(stdout: str) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(["ffprobe"], 0, stdout, "")


def test_parse_duration_reads_format_duration():
    assert parse_duration(json.dumps({"format": {"duration": "2.345"}})) == 2.345


@pytest.mark.parametrize("value", ["0", "-1", "nan"])
def test_parse_duration_rejects_non_positive(value):
    with pytest.raises(ValueError):
        parse_duration(json.dumps({"format": {"duration": value}}))


def test_probe_duration_memoises_by_file_identity(tmp_path, monkeypatch):
    clip = tmp_path / "clip.mp3"
    clip.write_bytes(b"data")
    calls = []

    async def fake_run(cmd, *, timeout=None):
        calls.append(cmd)
        return _completed(json.dumps({"format": {"duration": "1.5"}}))

    monkeypatch.setattr(ffmpeg_probe, "run_ffmpeg_async", fake_run)

    assert asyncio.run(probe_duration(clip)) == 1.5
    assert asyncio.run(probe_duration(clip)) == 1.5
    assert len(calls) == 1
    assert calls[0][0] == "ffprobe"
    assert calls[0][-1] == str(clip)


def test_strict_mode_raises_probe_error(tmp_path, monkeypatch):
    async def failing(cmd, *, timeout=None):
        raise subprocess.CalledProcessError(1, cmd, stderr="Invalid data")

    monkeypatch.setattr(ffmpeg_probe, "run_ffmpeg_async", failing)
    with pytest.raises(ProbeError):
        asyncio.run(probe_duration(tmp_path / "broken.mp3", mode=ProbeMode.STRICT))


def test_fallback_mode_returns_default(tmp_path, monkeypatch, caplog):
    async def garbage(cmd, *, timeout=None):
        return _completed("not json")

    monkeypatch.setattr(ffmpeg_probe, "run_ffmpeg_async", garbage)
    value = asyncio.run(probe_duration(tmp_path / "x.mp4", mode=ProbeMode.FALLBACK))
    assert value == 3.0


def test_missing_ffprobe_is_a_probe_error(tmp_path, monkeypatch):
    async def missing(cmd, *, timeout=None):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(ffmpeg_probe, "run_ffmpeg_async", missing)
    with pytest.raises(ProbeError):
        asyncio.run(probe_duration(tmp_path / "x.mp3"))
