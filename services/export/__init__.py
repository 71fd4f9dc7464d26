"""Export entry points: configuration loading, orchestration and the CLI."""

from services.export.config_loader import load_export_config, parse_export_config
from services.export.orchestrator import ExportOrchestrator

__all__ = ["ExportOrchestrator", "load_export_config", "parse_export_config"]
