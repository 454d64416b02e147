import asyncio
import subprocess
from pathlib import Path

import pytest

from peetle.components.video import renderer as renderer_mod
from peetle.components.video.filter_graph import FilterGraph
from peetle.components.video.render_plan import RenderPlan
from peetle.components.video.renderer import VideoRenderer
from peetle.exceptions import RenderError
from peetle.models import RenderInput
from peetle.utils.ffmpeg_params import AudioParams, VideoParams


def _plan(tmp_path: Path) -> RenderPlan:
    graph = FilterGraph()
    graph.add("0:v", "null", output="v")
    temp = tmp_path / "captions.srt"
    temp.write_text("1\n", encoding="utf-8")
    return RenderPlan(
        inputs=[RenderInput(tmp_path / "bg.mp4"), RenderInput(tmp_path / "a.mp3")],
        graph=graph,
        output_label="v",
        output_path=tmp_path / "out" / "final.mp4",
        duration=2.0,
        video=VideoParams(),
        audio=AudioParams(),
        temp_files=[temp],
    )


def test_render_returns_output_and_cleans_temp_files(tmp_path, monkeypatch):
    async def fake_run(cmd, *, timeout=None):
        Path(cmd[-1]).write_bytes(b"\x00" * 128)

    monkeypatch.setattr(renderer_mod, "_run_ffmpeg_async", fake_run)
    plan = _plan(tmp_path)
    out = asyncio.run(VideoRenderer().render(plan))

    assert out == tmp_path / "out" / "final.mp4"
    assert out.stat().st_size == 128
    assert not (tmp_path / "captions.srt").exists()
    assert plan.consumed


def test_non_zero_exit_removes_partial_output(tmp_path, monkeypatch):
    async def fake_run(cmd, *, timeout=None):
        Path(cmd[-1]).write_bytes(b"partial")
        raise subprocess.CalledProcessError(1, cmd, stderr="line1\nInvalid filter")

    monkeypatch.setattr(renderer_mod, "_run_ffmpeg_async", fake_run)
    plan = _plan(tmp_path)
    with pytest.raises(RenderError) as exc:
        asyncio.run(VideoRenderer().render(plan))

    assert "Invalid filter" in str(exc.value)
    assert not plan.output_path.exists()
    assert not (tmp_path / "captions.srt").exists()


def test_zero_byte_output_is_a_failure(tmp_path, monkeypatch):
    async def fake_run(cmd, *, timeout=None):
        Path(cmd[-1]).write_bytes(b"")

    monkeypatch.setattr(renderer_mod, "_run_ffmpeg_async", fake_run)
    plan = _plan(tmp_path)
    with pytest.raises(RenderError):
        asyncio.run(VideoRenderer().render(plan))
    assert not plan.output_path.exists()


def test_missing_output_is_a_failure(tmp_path, monkeypatch):
    async def fake_run(cmd, *, timeout=None):
        return None

    monkeypatch.setattr(renderer_mod, "_run_ffmpeg_async", fake_run)
    with pytest.raises(RenderError):
        asyncio.run(VideoRenderer().render(_plan(tmp_path)))


def test_timeout_becomes_render_error(tmp_path, monkeypatch):
    async def fake_run(cmd, *, timeout=None):
        raise subprocess.TimeoutExpired(cmd, timeout)

    monkeypatch.setattr(renderer_mod, "_run_ffmpeg_async", fake_run)
    with pytest.raises(RenderError):
        asyncio.run(VideoRenderer(timeout=1.0).render(_plan(tmp_path)))


def test_plan_can_only_be_rendered_once(tmp_path, monkeypatch):
    async def fake_run(cmd, *, timeout=None):
        Path(cmd[-1]).write_bytes(b"ok")

    monkeypatch.setattr(renderer_mod, "_run_ffmpeg_async", fake_run)
    plan = _plan(tmp_path)
    renderer = VideoRenderer()
    asyncio.run(renderer.render(plan))
    with pytest.raises(RenderError):
        asyncio.run(renderer.render(plan))
