from pathlib import Path

import pytest

from services.export import load_export_config, parse_export_config
from services.export.deck import load_presentation
from shared.errors import ConfigInvalid, NarrationPrecondition
from shared.export_models import BgmConfig, SlideConfig
from shared.timeline_models import FileNarration, SlideRange, TextNarration, TimeRange


def test_parse_full_config() -> None:
    config = parse_export_config(
        {
            "input": "deck.slide.json",
            "voicevox": {"speaker": 8, "speed": 1.1},
            "fps": 24,
            "defaultSlideDuration": 4,
            "slides": [
                {"slideIndex": 0, "narration": "Welcome"},
                {"slideIndex": 2, "audioFile": "clip.mp3", "duration": 6},
            ],
            "bgm": [{"src": "music.mp3", "volume": 0.3, "fadeIn": 2, "fromSlide": 1, "toSlide": 2}],
        }
    )

    assert config.fps == 24
    assert config.voicevox.url == "http://localhost:50021"
    assert config.voicevox.speaker == 8
    assert config.default_slide_duration == 4
    assert config.default_step_delay == 1
    assert [entry.slide_index for entry in config.slides] == [0, 2]
    assert config.slides[1].audio_file == "clip.mp3"
    assert config.slides[0].audio_file is None
    assert config.bgm[0].fade_in == 2
    assert config.bgm[0].loop


def test_defaults() -> None:
    config = parse_export_config({"input": "deck.slide.json"})
    assert config.fps == 30
    assert config.voicevox is None
    assert config.slides == []
    assert config.bgm == []


@pytest.mark.parametrize(
    ("data", "location"),
    [
        ({"fps": 30}, ["input"]),
        ({"input": "d.slide.json", "fps": 0}, ["fps"]),
        ({"input": "d.slide.json", "slides": [{"slideIndex": -1}]}, ["slides", 0, "slideIndex"]),
        ({"input": "d.slide.json", "bgm": [{"src": "a.mp3", "volume": 2}]}, ["bgm", 0, "volume"]),
    ],
)
def test_schema_violations_list_issues(data: dict, location: list) -> None:
    with pytest.raises(ConfigInvalid) as excinfo:
        parse_export_config(data)
    assert location in [issue["loc"] for issue in excinfo.value.issues]


def test_narration_source_variants() -> None:
    assert SlideConfig(slideIndex=0, narration="  Hi  ").narration_source() == TextNarration(text="Hi")
    assert SlideConfig(slideIndex=0, audioFile="a.wav").narration_source() == FileNarration(path="a.wav")
    assert SlideConfig(slideIndex=0, narration="   ").narration_source() is None


def test_text_and_file_are_exclusive() -> None:
    with pytest.raises(NarrationPrecondition):
        SlideConfig(slideIndex=1, narration="Hi", audioFile="a.wav").narration_source()


def test_time_bounds_take_precedence() -> None:
    bgm = BgmConfig(src="a.mp3", fromSlide=1, toSlide=2, fromTime=3)
    assert bgm.music_range() == TimeRange(from_ms=3000, to_ms=None)
    assert BgmConfig(src="a.mp3", toSlide=2).music_range() == SlideRange(from_slide=None, to_slide=2)


def test_load_video_json(write_json) -> None:
    path = write_json("demo.video.json", {"input": "demo.slide.json", "fps": 12})
    assert load_export_config(path).fps == 12


def test_load_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigInvalid, match="File not found"):
        load_export_config(tmp_path / "missing.video.json")


def test_load_malformed_json(tmp_path: Path) -> None:
    path = tmp_path / "broken.video.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigInvalid, match="not valid JSON"):
        load_export_config(path)


def test_load_slide_json_playback(write_json, deck_data) -> None:
    deck_data["playback"] = {
        "defaultSlideDuration": 3,
        "slides": [{"slideIndex": 0, "narration": "Hello", "duration": None}],
        "bgm": [{"src": "bgm.mp3", "volume": 0.2, "startTime": 1.5, "endTime": 6}],
    }
    path = write_json("talk.slide.json", deck_data)

    config = load_export_config(path)

    assert config.input == "talk.slide.json"
    assert config.default_slide_duration == 3
    assert config.slides[0].narration == "Hello"
    assert config.bgm[0].music_range() == TimeRange(from_ms=1500, to_ms=6000)


def test_slide_json_without_playback(write_json, deck_data) -> None:
    path = write_json("talk.slide.json", deck_data)
    with pytest.raises(ConfigInvalid, match="No playback config"):
        load_export_config(path)


def test_load_presentation_keeps_raw_document(write_json, deck_data) -> None:
    presentation, raw = load_presentation(write_json("talk.slide.json", deck_data))

    assert len(presentation.slides) == 2
    assert presentation.meta.width == 320
    assert raw["slides"][0]["id"] == "intro"
    assert presentation.slides[0].elements[1].animations[0].step_index == 1


def test_invalid_deck(write_json) -> None:
    with pytest.raises(ConfigInvalid, match="Invalid deck"):
        load_presentation(write_json("bad.slide.json", {"slides": [{"elements": "nope"}]}))
