from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from .core.config import get_settings
from .core.errors import ProcessingFailed
from .ingest.probe import MediaProber, classify_ratio
from .ingest.process import SubprocessRunner
from .ingest.remux import FastStartRemuxer

console = Console()


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "check", False):
        _run_environment_check()
        return

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI.

    Returns:
        The argument parser.
    """
    parser = argparse.ArgumentParser(description="Reelcast ingest developer CLI")
    parser.add_argument("--check", action="store_true", help="Validate presence of ffmpeg/ffprobe binaries")

    subparsers = parser.add_subparsers(dest="command")

    probe_parser = subparsers.add_parser("probe", help="Print a file's video dimensions and orientation class")
    probe_parser.add_argument("--file", required=True, help="Path to the source media file")
    probe_parser.set_defaults(func=_cmd_probe)

    remux_parser = subparsers.add_parser("remux", help="Write a fast-start copy next to the source file")
    remux_parser.add_argument("--file", required=True, help="Path to the source MP4 file")
    remux_parser.set_defaults(func=_cmd_remux)
    return parser


def _resolve_media(raw: str) -> Path:
    media_path = Path(raw).expanduser().resolve()
    if not media_path.exists():
        console.print(f"[red]File not found: {media_path}[/]")
        sys.exit(2)
    return media_path


def _cmd_probe(args: argparse.Namespace) -> None:
    """Print dimensions and orientation for a media file.

    Args:
        args: The command-line arguments.
    """
    settings = get_settings()
    media_path = _resolve_media(args.file)
    prober = MediaProber(SubprocessRunner(timeout_s=settings.tool_timeout_s), binary=settings.ffprobe_binary)
    try:
        width, height = prober.probe_dimensions(media_path)
    except ProcessingFailed as exc:
        console.print(f"[red]{exc.message}:[/] {exc.detail}")
        sys.exit(3)

    table = Table(title=media_path.name)
    table.add_column("width")
    table.add_column("height")
    table.add_column("orientation")
    table.add_row(str(width), str(height), classify_ratio(width, height).value)
    console.print(table)


def _cmd_remux(args: argparse.Namespace) -> None:
    settings = get_settings()
    media_path = _resolve_media(args.file)
    remuxer = FastStartRemuxer(SubprocessRunner(timeout_s=settings.tool_timeout_s), binary=settings.ffmpeg_binary)
    try:
        output = remuxer.remux(media_path)
    except ProcessingFailed as exc:
        console.print(f"[red]{exc.message}:[/] {exc.detail}")
        sys.exit(3)
    console.print(f"[green]Fast-start copy written to {output}[/]")


def _run_environment_check() -> None:
    """Check for the presence of required external dependencies."""
    settings = get_settings()
    results = {
        "ffmpeg": shutil.which(settings.ffmpeg_binary) is not None,
        "ffprobe": shutil.which(settings.ffprobe_binary) is not None,
    }

    console.rule("[bold]Environment Check")
    for label, ok in results.items():
        console.print(f"[bold]{label}[/]: {'✅' if ok else '❌'}")

    if not all(results.values()):
        console.print("[red]Missing dependencies detected. Install ffmpeg or set REELCAST_FFMPEG_BINARY/REELCAST_FFPROBE_BINARY.[/]")
        sys.exit(1)
    console.print("[green]Environment looks good![/]")


if __name__ == "__main__":
    main()
