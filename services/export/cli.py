import argparse
import asyncio
import sys
from pathlib import Path

from services.export.config_loader import load_export_config
from services.export.orchestrator import ExportOrchestrator
from shared.errors import ConfigInvalid, ExportError
from shared.timeline_models import CaptureProgress

CONFIG_SUFFIXES = (".video.json", ".slide.json", ".json")


def default_output_path(config_path: Path) -> Path:
    """<name>.video.json -> <name>.mp4 beside the configuration."""
    name = config_path.name
    for suffix in CONFIG_SUFFIXES:
        if name.endswith(suffix):
            return config_path.with_name(name[: -len(suffix)] + ".mp4")
    return config_path.with_name(name + ".mp4")


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def print_progress(progress: CaptureProgress) -> None:
    sys.stdout.write(
        f"\r  Progress: {progress.frame}/{progress.total_frames} ({progress.percent:.0f}%)"
    )
    if progress.frame == progress.total_frames:
        sys.stdout.write("\n")
    sys.stdout.flush()


def report_error(error: ExportError) -> None:
    print(f"\nError: {error}", file=sys.stderr)
    if isinstance(error, ConfigInvalid):
        for issue in error.issues:
            location = ".".join(str(part) for part in issue.get("loc", [])) or "<root>"
            print(f"  - {location}: {issue.get('msg')}", file=sys.stderr)
    if error.diagnostics:
        print(error.diagnostics, file=sys.stderr)
    if error.hint:
        print(f"Hint: {error.hint}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slidereel-export",
        description="Render a slide deck with narration and background music to MP4.",
    )
    parser.add_argument("config", help="Export configuration (.video.json) or deck with playback (.slide.json)")
    parser.add_argument("-o", "--output", help="Output MP4 path (default: <config name>.mp4)")
    parser.add_argument("--fps", type=positive_int, help="Frames per second (overrides the configuration)")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config_path = Path(args.config).resolve()
    output_path = Path(args.output).resolve() if args.output else default_output_path(config_path)

    try:
        export_config = load_export_config(config_path)
        if args.fps is not None:
            export_config = export_config.model_copy(update={"fps": args.fps})
        orchestrator = ExportOrchestrator(on_progress=print_progress)
        asyncio.run(orchestrator.render(export_config, config_path.parent, output_path))
    except ExportError as exc:
        report_error(exc)
        return 1
    except KeyboardInterrupt:
        print("\nExport cancelled", file=sys.stderr)
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
