import pytest

from peetle.components.video.filter_graph import FilterGraph, filter_call


def test_filter_call_formats_positional_and_keyword_options():
    assert filter_call("null") == "null"
    assert (
        filter_call("scale", 600, 600, force_original_aspect_ratio="decrease")
        == "scale=600:600:force_original_aspect_ratio=decrease"
    )
    assert filter_call("overlay", x="'10'", y=None) == "overlay=x='10'"


def test_serialize_chains_stages_in_order():
    graph = FilterGraph()
    bg = graph.add("0:v", ["scale=1080:1920", "setpts=PTS-STARTPTS"], output="bg")
    fg = graph.add("2:v", "scale=600:600", prefix="fg")
    out = graph.add([bg, fg], "overlay=x=0:y=0", output="v")

    assert fg == "fg0"
    assert out == "v"
    assert graph.serialize() == (
        "[0:v]scale=1080:1920,setpts=PTS-STARTPTS[bg];"
        "[2:v]scale=600:600[fg0];"
        "[bg][fg0]overlay=x=0:y=0[v]"
    )
    assert len(graph) == 3


def test_duplicate_output_label_is_rejected():
    graph = FilterGraph()
    graph.add("0:v", "null", output="bg")
    with pytest.raises(ValueError):
        graph.add("1:v", "null", output="bg")


def test_label_used_before_definition_fails_validation():
    graph = FilterGraph()
    graph.add(["later"], "null", output="a")
    graph.add("0:v", "null", output="later")
    with pytest.raises(ValueError):
        graph.serialize()


def test_label_consumed_twice_fails_validation():
    graph = FilterGraph()
    graph.add("0:v", "null", output="bg")
    graph.add("bg", "null", output="a")
    graph.add("bg", "null", output="b")
    with pytest.raises(ValueError):
        graph.validate()


def test_split_fans_out_one_source():
    graph = FilterGraph()
    branches = graph.split("3:v", 3, prefix="src3_")
    assert branches == ["src3_0", "src3_1", "src3_2"]
    assert graph.serialize() == "[3:v]split=3[src3_0][src3_1][src3_2]"


def test_split_of_one_returns_source_unchanged():
    graph = FilterGraph()
    assert graph.split("2:v", 1) == ["2:v"]
    assert len(graph) == 0


def test_stage_needs_a_filter():
    with pytest.raises(ValueError):
        FilterGraph().add("0:v", [])
