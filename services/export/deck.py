"""Load the slide deck referenced by an export configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import ValidationError

from services.export.config_loader import describe_issues, read_json, validation_issues
from shared.errors import ConfigInvalid
from shared.presentation_models import Presentation


def load_presentation(path: str | Path) -> tuple[Presentation, dict[str, Any]]:
    """Return the validated deck and the raw document handed to the rendering host."""
    path = Path(path)
    raw = read_json(path)
    try:
        presentation = Presentation.model_validate(raw)
    except ValidationError as exc:
        issues = validation_issues(exc)
        raise ConfigInvalid(
            f"Invalid deck {path.name}: {describe_issues(issues)}", issues=issues
        ) from exc
    return presentation, raw
