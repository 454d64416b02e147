import asyncio
from pathlib import Path

import pytest

from peetle.utils import ffmpeg_audio
from peetle.utils.ffmpeg_audio import build_mix_filter, concat_with_silence, write_concat_list
from peetle.utils.ffmpeg_params import AudioParams
from peetle.utils.ffmpeg_probe import ProbeMode


def test_build_mix_filter_single_input_only_boosts():
    assert build_mix_filter([0.0], 2.0) == "[0:a]volume=2[aout]"


def test_build_mix_filter_delays_each_clip_in_milliseconds():
    graph = build_mix_filter([0.0, 2.8, 7.1], 2.0)
    parts = graph.split(";")
    assert parts[0] == "[0:a]volume=2,adelay=0|0[a0]"
    assert parts[1] == "[1:a]volume=2,adelay=2800|2800[a1]"
    assert parts[2] == "[2:a]volume=2,adelay=7100|7100[a2]"
    assert parts[3] == "[a0][a1][a2]amix=inputs=3:duration=longest:normalize=0[aout]"


def test_write_concat_list_escapes_quotes(tmp_path):
    clip = tmp_path / "it's.mp3"
    list_path = write_concat_list([clip], tmp_path / "list.txt")
    content = list_path.read_text(encoding="utf-8")
    assert content.startswith("file '")
    assert "it'\\''s.mp3" in content


def test_concat_with_silence_interleaves_one_silence_file(tmp_path, monkeypatch):
    commands = []
    probed = []

    async def fake_run(cmd, *, timeout=None):
        commands.append(cmd)
        Path(cmd[-1]).write_bytes(b"x")

    async def fake_probe(path, *, mode, timeout, ffprobe_path):
        probed.append((Path(path).name, mode))
        return 0.826 if "silence" in Path(path).name else 1.5

    monkeypatch.setattr(ffmpeg_audio, "_run_ffmpeg_async", fake_run)
    monkeypatch.setattr(ffmpeg_audio, "probe_duration", fake_probe)
    inputs = [str(tmp_path / f"{i}.mp3") for i in range(3)]
    out = tmp_path / "combined.mp3"

    durations, gap = asyncio.run(
        concat_with_silence(inputs, str(out), gap=0.8, audio_params=AudioParams())
    )

    # silence once, a boosted copy per clip, then the concat itself
    assert len(commands) == 5
    assert any("anullsrc=r=44100:cl=stereo" in c for c in commands[0])
    assert commands[1][commands[1].index("-af") + 1] == "volume=2"
    # intermediates are PCM WAV so the demuxer joins them sample-exact
    for cmd in commands[:4]:
        assert cmd[-1].endswith(".wav")
        assert cmd[cmd.index("-c:a") + 1] == "pcm_s16le"
    final = commands[-1]
    assert final[-1] == str(out)
    assert "concat" in final
    assert "copy" not in final
    assert final[final.index("-c:a") + 1] == "libmp3lame"
    # every part is measured after it is written
    assert probed == [
        ("combined_silence.wav", ProbeMode.STRICT),
        ("combined_part000.wav", ProbeMode.STRICT),
        ("combined_part001.wav", ProbeMode.STRICT),
        ("combined_part002.wav", ProbeMode.STRICT),
    ]
    assert durations == [1.5, 1.5, 1.5]
    assert gap == 0.826
    # intermediates removed, output kept
    assert sorted(p.name for p in tmp_path.iterdir()) == ["combined.mp3"]


def test_concat_single_clip_needs_no_silence(tmp_path, monkeypatch):
    async def fake_run(cmd, *, timeout=None):
        assert not any("anullsrc" in str(a) for a in cmd)
        Path(cmd[-1]).write_bytes(b"x")

    async def fake_probe(path, **_kwargs):
        return 2.25

    monkeypatch.setattr(ffmpeg_audio, "_run_ffmpeg_async", fake_run)
    monkeypatch.setattr(ffmpeg_audio, "probe_duration", fake_probe)
    durations, gap = asyncio.run(
        concat_with_silence(
            [str(tmp_path / "a.mp3")], str(tmp_path / "c.mp3"), gap=0.8, audio_params=AudioParams()
        )
    )
    assert durations == [2.25]
    assert gap == 0.8


def test_concat_with_silence_cleans_up_on_failure(tmp_path, monkeypatch):
    async def fake_run(cmd, *, timeout=None):
        if "concat" in cmd:
            raise RuntimeError("concat failed")
        Path(cmd[-1]).write_bytes(b"x")

    async def fake_probe(path, **_kwargs):
        return 1.0

    monkeypatch.setattr(ffmpeg_audio, "_run_ffmpeg_async", fake_run)
    monkeypatch.setattr(ffmpeg_audio, "probe_duration", fake_probe)
    with pytest.raises(RuntimeError):
        asyncio.run(
            concat_with_silence(
                [str(tmp_path / "a.mp3"), str(tmp_path / "b.mp3")],
                str(tmp_path / "combined.mp3"),
                gap=0.5,
                audio_params=AudioParams(),
            )
        )
    assert list(tmp_path.iterdir()) == []
