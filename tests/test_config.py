import pytest

from shared.config import ServiceConfig, config


def test_pipeline_value_by_dotted_path() -> None:
    config.set_pipeline_config({"capture": {"settle_ticks": 12}, "encoder": {"crf": None}})

    assert config.get_pipeline_value("capture.settle_ticks", 10) == 12
    assert config.get_pipeline_value("capture.missing", 5) == 5
    assert config.get_pipeline_value("encoder.crf", 18) == 18


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("23", 23), ("0.5", 0.5), ("false", False), ("True", True), ("fast", "fast")],
)
def test_env_flag_overrides_pipeline_file(monkeypatch: pytest.MonkeyPatch, raw: str, expected) -> None:
    config.set_pipeline_config({"encoder": {"crf": 18}})
    monkeypatch.setenv("PIPELINE_FLAG_ENCODER_CRF", raw)

    assert config.get_pipeline_value("encoder.crf", 18) == expected


def test_environment_settings(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("FFMPEG_PATH", "/opt/ffmpeg/bin/ffmpeg")
    monkeypatch.setenv("EXPORT_SCRATCH_ROOT", str(tmp_path))
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("EXPORT_PIPELINE_CONFIG_PATH", str(tmp_path / "missing.yaml"))

    settings = ServiceConfig()

    assert settings.get("ffmpeg_path") == "/opt/ffmpeg/bin/ffmpeg"
    assert settings.get("scratch_root") == str(tmp_path)
    assert settings.get("log_level") == "DEBUG"
    assert settings.pipeline_config == {}


def test_pipeline_file_is_loaded(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    pipeline = tmp_path / "pipeline.yaml"
    pipeline.write_text("narration:\n  concurrency: 2\n", encoding="utf-8")
    monkeypatch.setenv("EXPORT_PIPELINE_CONFIG_PATH", str(pipeline))

    assert ServiceConfig().get_pipeline_value("narration.concurrency") == 2


def test_tool_path_prefers_environment() -> None:
    config.set_pipeline_config({"encoder": {"ffmpeg_path": "/pipeline/ffmpeg", "ffprobe_path": "/pipeline/ffprobe"}})
    config.set("ffmpeg_path", "/env/ffmpeg")

    assert config.tool_path("ffmpeg") == "/env/ffmpeg"
    assert config.tool_path("ffprobe") == "/pipeline/ffprobe"
