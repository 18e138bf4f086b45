from __future__ import annotations

from pathlib import Path

from app.core.errors import ProcessingFailed
from app.core.logging import get_logger

from .process import ProcessRunner

PROCESSED_MARKER = ".processed"


def output_path_for(source: Path) -> Path:
    """Return the sibling path a remux of ``source`` is written to.

    ``clip.mp4`` becomes ``clip.processed.mp4``; a name without an extension
    gets ``.processed.mp4``.
    """
    suffix = source.suffix or ".mp4"
    stem = source.stem if source.suffix else source.name
    return source.with_name(f"{stem}{PROCESSED_MARKER}{suffix}")


class FastStartRemuxer:
    """Rewrites an MP4 so the moov atom precedes the media data, copying streams."""

    def __init__(self, runner: ProcessRunner, *, binary: str = "ffmpeg"):
        self.runner = runner
        self.binary = binary
        self.logger = get_logger(component="faststart_remuxer")

    def remux(self, source: Path) -> Path:
        target = output_path_for(source)
        args = [
            "-y",
            "-i",
            str(source),
            "-movflags",
            "+faststart",
            "-map_metadata",
            "0",
            "-codec",
            "copy",
            "-f",
            "mp4",
            str(target),
        ]
        result = self.runner.run(self.binary, args)
        if not result.ok:
            stderr = result.stderr.strip()
            self.logger.warning("remux_failed", source=str(source), exit_code=result.exit_code, stderr=stderr)
            raise ProcessingFailed("ffmpeg failed", detail=stderr)
        self.logger.info("remux_finished", source=str(source), target=str(target))
        return target


__all__ = ["FastStartRemuxer", "output_path_for"]
