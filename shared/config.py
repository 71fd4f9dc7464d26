"""
Configuration management for the export pipeline.
"""

import os
import tempfile
from typing import Any

import yaml

from dotenv import load_dotenv


class ServiceConfig:
    """Configuration management using environment variables and a YAML pipeline file."""

    def __init__(self) -> None:
        """Initialize configuration by loading environment variables."""
        # Load .env from the project root (one level above shared/)
        env_path = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.env"))
        load_dotenv(dotenv_path=env_path, override=False)
        self.config: dict[str, Any] = {}
        self.pipeline_config: dict[str, Any] = {}
        self.pipeline_config_path = os.getenv(
            "EXPORT_PIPELINE_CONFIG_PATH",
            os.path.join(os.path.dirname(__file__), "../config/pipeline.yaml"),
        )
        self.load_from_env()
        self.load_pipeline_config()

    def load_from_env(self) -> None:
        """Load configuration from environment variables."""
        self.config = {
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "ffmpeg_path": os.getenv("FFMPEG_PATH"),
            "ffprobe_path": os.getenv("FFPROBE_PATH"),
            "export_app_dir": os.getenv("EXPORT_APP_DIR"),
            "clock_script": os.getenv("EXPORT_CLOCK_SCRIPT"),
            "scratch_root": os.getenv("EXPORT_SCRATCH_ROOT", tempfile.gettempdir()),
        }

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by key.

        Args:
            key: Configuration key
            default: Default value if key not found or unset

        Returns:
            Configuration value
        """
        value = self.config.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value.

        Args:
            key: Configuration key
            value: Configuration value
        """
        self.config[key] = value

    def load_pipeline_config(self) -> None:
        """Load pipeline configuration from YAML file."""
        path = os.path.abspath(self.pipeline_config_path)
        try:
            with open(path, "r", encoding="utf-8") as stream:
                data = yaml.safe_load(stream) or {}
        except FileNotFoundError:
            data = {}
        self.pipeline_config = data

    def get_pipeline_value(self, path: str, default: Any = None) -> Any:
        """Retrieve a pipeline configuration value via dotted path."""
        env_override_key = f"PIPELINE_FLAG_{path.replace('.', '_').upper()}"
        env_value = os.getenv(env_override_key)
        if env_value is not None:
            return self._coerce_env_value(env_value, default)

        node: Any = self.pipeline_config
        for part in path.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node if node is not None else default

    def tool_path(self, tool: str) -> str | None:
        """Configured location of an external binary such as ffmpeg or ffprobe.

        The <TOOL>_PATH environment variable wins over encoder.<tool>_path.
        """
        return self.get(f"{tool}_path") or self.get_pipeline_value(f"encoder.{tool}_path")

    def set_pipeline_config(self, pipeline_config: dict[str, Any]) -> None:
        """Override pipeline configuration (useful for tests)."""
        self.pipeline_config = pipeline_config

    @staticmethod
    def _coerce_env_value(raw: str, default: Any) -> Any:
        lowered = raw.lower()
        if lowered in {"true", "false"}:
            return lowered == "true"
        if lowered.replace(".", "", 1).isdigit():
            try:
                return float(lowered) if "." in lowered else int(lowered)
            except ValueError:
                return raw
        return raw or default


# Global configuration instance
config = ServiceConfig()
