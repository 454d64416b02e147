from pathlib import Path
import sys

import pytest
import yaml

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from peetle.components.script.loader import (
    load_dialogue,
    load_script_overrides,
    parse_transcript,
    placeholders_in,
)
from peetle.exceptions import ValidationError
from peetle.models import DialogueLine, Speaker


def test_parse_transcript_maps_names_and_image_markers(settings):
    content = (
        "# intro\n"
        "\n"
        "Peter: Hey Stewie, look at this [image: Big Chart]\n"
        "stage direction without a speaker\n"
        "Stewie: Fascinating.\n"
    )
    lines = parse_transcript(content, settings)
    assert lines == [
        DialogueLine(Speaker.A, "Hey Stewie, look at this", "Big Chart"),
        DialogueLine(Speaker.B, "Fascinating."),
    ]


def test_unknown_speaker_reports_line_number(settings):
    with pytest.raises(ValidationError) as exc:
        parse_transcript("Peter: hi\nBrian: woof\n", settings)
    assert exc.value.line_number == 2
    assert "Brian" in exc.value.message


def test_empty_text_is_rejected(settings):
    with pytest.raises(ValidationError):
        parse_transcript("Peter: [image: chart]\n", settings)


def test_yaml_script_with_overrides(tmp_path, settings):
    script = tmp_path / "episode.yaml"
    script.write_text(
        yaml.safe_dump(
            {
                "timing": {"gap": 0.5},
                "captions": {"mode": "line"},
                "meta": {"title": "ignored"},
                "lines": [
                    {"speaker": "Peter", "text": "Roadhouse!", "image": "roadhouse"},
                    {"speaker": "B", "text": "Oh dear [image: chart]"},
                ],
            }
        ),
        encoding="utf-8",
    )

    assert load_script_overrides(str(script)) == {
        "timing": {"gap": 0.5},
        "captions": {"mode": "line"},
    }
    lines = load_dialogue(str(script), settings)
    assert [(l.speaker, l.text, l.image_placeholder) for l in lines] == [
        (Speaker.A, "Roadhouse!", "roadhouse"),
        (Speaker.B, "Oh dear", "chart"),
    ]
    assert placeholders_in(lines) == ["roadhouse", "chart"]


def test_transcript_file_has_no_overrides(tmp_path, settings):
    script = tmp_path / "episode.txt"
    script.write_text("Peter: one\nStewie: two\nPeter: three [image: x]\n", encoding="utf-8")
    assert load_script_overrides(str(script)) == {}
    lines = load_dialogue(str(script), settings)
    assert [l.speaker for l in lines] == [Speaker.A, Speaker.B, Speaker.A]


@pytest.mark.parametrize(
    "payload",
    [
        {"lines": "not a list"},
        {"lines": [{"speaker": "Peter"}]},
        {"lines": [{"speaker": "Peter", "text": "   "}]},
        {"lines": [{"speaker": "Meg", "text": "hi"}]},
        {"lines": [{"speaker": "Peter", "text": "hi", "image": 3}]},
        {"lines": []},
    ],
)
def test_invalid_yaml_scripts(tmp_path, settings, payload):
    script = tmp_path / "bad.yaml"
    script.write_text(yaml.safe_dump(payload), encoding="utf-8")
    with pytest.raises(ValidationError):
        load_dialogue(str(script), settings)


def test_missing_script_file(tmp_path, settings):
    with pytest.raises(ValidationError):
        load_dialogue(str(tmp_path / "nope.txt"), settings)


def test_placeholders_are_distinct_in_script_order():
    lines = [
        DialogueLine(Speaker.A, "a", "x"),
        DialogueLine(Speaker.B, "b"),
        DialogueLine(Speaker.A, "c", "y"),
        DialogueLine(Speaker.B, "d", "x"),
    ]
    assert placeholders_in(lines) == ["x", "y"]
