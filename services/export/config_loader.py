"""Load and validate export configurations (.video.json or .slide.json with playback)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from shared.errors import ConfigInvalid
from shared.export_models import ExportConfig


def validation_issues(exc: ValidationError) -> list[dict[str, Any]]:
    """Flatten pydantic errors into {loc, msg} entries."""
    return [{"loc": list(error["loc"]), "msg": error["msg"]} for error in exc.errors()]


def describe_issues(issues: list[dict[str, Any]]) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in issue['loc']) or '<root>'}: {issue['msg']}"
        for issue in issues
    )


def parse_export_config(data: Any) -> ExportConfig:
    """Validate raw JSON data as an export configuration."""
    try:
        return ExportConfig.model_validate(data)
    except ValidationError as exc:
        issues = validation_issues(exc)
        raise ConfigInvalid(
            f"Invalid export configuration: {describe_issues(issues)}", issues=issues
        ) from exc


def player_config_to_export_config(playback: dict[str, Any], input_ref: str) -> ExportConfig:
    """Build an export configuration from a deck's saved player configuration."""
    slides = []
    for entry in playback.get("slides", []):
        slide: dict[str, Any] = {
            "slideIndex": entry.get("slideIndex"),
            "duration": entry.get("duration"),
        }
        if entry.get("narration") is not None:
            slide["narration"] = entry["narration"]
        if entry.get("audioFile") is not None:
            slide["audioFile"] = entry["audioFile"]
        slides.append(slide)

    bgm = []
    for entry in playback.get("bgm", []):
        track: dict[str, Any] = {
            key: entry[key]
            for key in ("src", "volume", "loop", "fadeIn", "fadeOut")
            if key in entry
        }
        if entry.get("startTime") is not None:
            track["fromTime"] = entry["startTime"]
        if entry.get("endTime") is not None:
            track["toTime"] = entry["endTime"]
        bgm.append(track)

    data: dict[str, Any] = {"input": input_ref, "fps": 30, "slides": slides, "bgm": bgm}
    for key in ("defaultSlideDuration", "defaultStepDelay"):
        if playback.get(key) is not None:
            data[key] = playback[key]
    return parse_export_config(data)


def read_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as stream:
            return json.load(stream)
    except FileNotFoundError as exc:
        raise ConfigInvalid(f"File not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigInvalid(
            f"{path} is not valid JSON: {exc}",
            issues=[{"loc": [], "msg": str(exc)}],
        ) from exc


def load_export_config(path: str | Path) -> ExportConfig:
    """Load an export configuration from disk."""
    path = Path(path)
    raw = read_json(path)

    if path.name.endswith(".slide.json"):
        playback = raw.get("playback") if isinstance(raw, dict) else None
        if not playback:
            raise ConfigInvalid(
                f"No playback config found in {path.name}",
                issues=[{"loc": ["playback"], "msg": "field required"}],
            )
        return player_config_to_export_config(playback, path.name)

    return parse_export_config(raw)
