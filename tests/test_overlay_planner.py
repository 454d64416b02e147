from dataclasses import replace
from pathlib import Path

import pytest

from peetle.components.config.settings import ImageSettings, TimingSettings
from peetle.components.video.overlay_planner import OverlayPlanner
from peetle.models import OverlayKind, Speaker, TimelineInterval, WordToken


def _interval(speaker, start, end, text="hello there"):
    return TimelineInterval(speaker=speaker, start=start, end=end, source_text=text)


def _token(start, end, placeholder=None):
    return WordToken(
        text="word", start=start, end=end, speaker=Speaker.A, image_placeholder=placeholder
    )


@pytest.fixture
def planner(settings):
    return OverlayPlanner(settings.timing, settings.characters, settings.images)


def test_character_window_covers_interval_with_rolls(planner):
    iv = _interval(Speaker.A, 2.8, 6.3)
    (w,) = planner.plan([iv])
    assert w.kind is OverlayKind.CHARACTER
    assert w.identity == "Peter"
    assert w.animation_start == pytest.approx(2.6)
    assert w.animation_end == pytest.approx(6.9)
    assert w.animation_start <= iv.start and iv.end <= w.animation_end
    assert w.slide_in_end == pytest.approx(3.4)
    assert w.slide_out_start == pytest.approx(6.1)
    assert not w.is_short


def test_first_window_is_clamped_at_zero(planner):
    (w,) = planner.plan([_interval(Speaker.B, 0.0, 2.0)])
    assert w.animation_start == 0.0
    assert w.source == Path("assets/stewie.png")


def test_long_window_positions_at_key_times(planner):
    (w,) = planner.plan([_interval(Speaker.A, 2.8, 6.3)])
    motion = w.motion
    assert motion.axis == "x"
    assert w.position_at(w.animation_start) == pytest.approx(motion.offscreen)
    assert w.position_at(w.slide_in_end) == pytest.approx(motion.rest)
    assert w.position_at((w.slide_in_end + w.slide_out_start) / 2) == motion.rest
    assert w.position_at(w.slide_out_start) == pytest.approx(motion.rest)
    assert w.position_at(w.animation_end) == pytest.approx(motion.offscreen)
    assert w.position_at(w.animation_end + 1.0) == motion.offscreen
    # A enters from the right
    assert motion.offscreen == 1080 and motion.rest == 20


def test_short_window_slides_in_and_stays(settings):
    timing = TimingSettings(pre_roll=0.0, post_roll=0.0, character_slide=0.8)
    planner = OverlayPlanner(timing, settings.characters)
    (w,) = planner.plan([_interval(Speaker.B, 0.0, 1.0)])
    assert w.is_short
    m = w.motion
    assert w.position_at(0.0) == pytest.approx(m.offscreen)
    assert w.position_at(0.8) == pytest.approx(m.rest)
    assert w.position_at(1.0) == pytest.approx(m.rest)
    assert w.position_at(1.01) == m.offscreen
    assert w.position_expr().startswith("if(between(t,0,1),")
    assert "min(1,(t-0)/0.8)" in w.position_expr()


def test_entry_edge_decides_offscreen_position(settings):
    chars = dict(settings.characters)
    chars[Speaker.A] = replace(chars[Speaker.A], enter_from="left")
    chars[Speaker.B] = replace(chars[Speaker.B], enter_from="right")
    planner = OverlayPlanner(settings.timing, chars, frame_width=720)

    peter = planner.character_motion(Speaker.A)
    stewie = planner.character_motion(Speaker.B)
    # left: the whole box sits past the left edge; right: just past the frame width
    assert peter.offscreen == -1600 and peter.offscreen < peter.rest
    assert stewie.offscreen == 720 and stewie.offscreen > stewie.rest

    (w,) = planner.plan([_interval(Speaker.A, 2.8, 6.3)])
    assert w.position_at(w.animation_start) == pytest.approx(-1600)
    assert w.x_expr.endswith(",-1600)))")


def test_position_expression_for_long_window(planner):
    (w,) = planner.plan([_interval(Speaker.A, 2.8, 6.3)])
    expr = w.x_expr
    assert expr == (
        "if(between(t,2.6,3.4),1080-1060*(1-pow(1-((t-2.6)/0.8),4)),"
        "if(between(t,3.4,6.1),20,"
        "if(between(t,6.1,6.9),20+1060*(1-pow(1-((t-6.1)/0.8),4)),"
        "1080)))"
    )
    assert w.y_expr == "520"
    assert w.enable_expr() == "between(t,2.6,6.9)"


def test_image_windows_are_back_to_back(planner):
    tokens = [
        _token(0.0, 0.4, "chart"),
        _token(0.4, 1.0),
        _token(3.0, 3.5, "photo"),
        _token(5.0, 5.5, "missing"),
    ]
    image_map = {"chart": Path("img_chart.jpg"), "photo": Path("img_photo.jpg")}
    windows = planner.plan_images(tokens, image_map, total_duration=8.0)

    assert [w.identity for w in windows] == ["chart", "photo"]
    assert windows[0].animation_start == 0.0
    assert windows[0].animation_end == 3.0
    # unresolved placeholders do not cut the previous image short
    assert windows[1].animation_start == 3.0
    assert windows[1].animation_end == 8.0
    for a, b in zip(windows, windows[1:]):
        assert a.animation_end <= b.animation_start


def test_image_window_has_minimum_duration(planner):
    tokens = [_token(1.0, 1.1, "a"), _token(1.2, 1.3, "b")]
    image_map = {"a": Path("a.jpg"), "b": Path("b.jpg")}
    windows = planner.plan_images(tokens, image_map, total_duration=4.0)

    assert windows[0].animation_end == pytest.approx(1.5)
    assert windows[1].animation_start == pytest.approx(1.5)
    assert windows[1].animation_end == 4.0
    for w in windows:
        assert w.animation_end - w.animation_start >= 0.5


def test_image_motion_drops_from_top(settings):
    images = ImageSettings(max_width=800, max_height=600, rest_y=260)
    planner = OverlayPlanner(settings.timing, settings.characters, images)
    (w,) = planner.plan_images([_token(0.0, 1.0, "x")], {"x": Path("x.jpg")}, 5.0)
    assert w.kind is OverlayKind.IMAGE
    assert w.motion.axis == "y"
    assert w.motion.offscreen == -600
    assert w.motion.rest == 260
    assert w.x_expr == "(W-w)/2"
    assert w.box == (800, 600)
    assert w.slide_duration == pytest.approx(0.4)


def test_no_images_without_resolved_placeholders(planner):
    assert planner.plan_images([_token(0.0, 1.0, "gone")], {}, 3.0) == []
