from __future__ import annotations

import enum
import json
from pathlib import Path
from typing import Any, Optional, Tuple

from app.core.errors import MalformedMedia, ProcessingFailed
from app.core.logging import get_logger

from .process import ProcessRunner

ASPECT_TOLERANCE = 0.05
LANDSCAPE_RATIO = 16 / 9
PORTRAIT_RATIO = 9 / 16


class Orientation(str, enum.Enum):
    landscape = "landscape"
    portrait = "portrait"
    other = "other"


def classify_ratio(width: int, height: int) -> Orientation:
    """Map frame geometry onto an orientation class.

    16:9 is tested before 9:16 and the tolerance is strict, so a ratio exactly
    ``ASPECT_TOLERANCE`` away from a reference does not match it.

    Args:
        width: Frame width in pixels.
        height: Frame height in pixels.

    Returns:
        The orientation class.
    """
    ratio = width / height
    if abs(ratio - LANDSCAPE_RATIO) < ASPECT_TOLERANCE:
        return Orientation.landscape
    if abs(ratio - PORTRAIT_RATIO) < ASPECT_TOLERANCE:
        return Orientation.portrait
    return Orientation.other


def _positive_int_or_none(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def parse_dimensions(raw: str) -> Tuple[int, int]:
    """Extract width and height of the first stream from ffprobe JSON output.

    Args:
        raw: The ffprobe stdout.

    Returns:
        A ``(width, height)`` tuple.
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProcessingFailed("ffprobe produced unreadable output", detail=raw[:2000]) from exc

    streams = payload.get("streams") if isinstance(payload, dict) else None
    if not streams or not isinstance(streams[0], dict):
        raise MalformedMedia("no video stream found")

    first = streams[0]
    width = _positive_int_or_none(first.get("width"))
    height = _positive_int_or_none(first.get("height"))
    if width is None or height is None:
        raise MalformedMedia("video stream is missing width/height", detail=first)
    return width, height


class MediaProber:
    def __init__(self, runner: ProcessRunner, *, binary: str = "ffprobe"):
        self.runner = runner
        self.binary = binary
        self.logger = get_logger(component="media_prober")

    def probe_dimensions(self, path: Path) -> Tuple[int, int]:
        args = [
            "-v",
            "error",
            "-select_streams",
            "v:0",
            "-show_entries",
            "stream=width,height",
            "-of",
            "json",
            str(path),
        ]
        result = self.runner.run(self.binary, args)
        if not result.ok:
            self.logger.warning("probe_failed", path=str(path), exit_code=result.exit_code)
            raise ProcessingFailed("ffprobe failed", detail=result.stderr.strip())
        return parse_dimensions(result.stdout)

    def classify_orientation(self, path: Path) -> Orientation:
        width, height = self.probe_dimensions(path)
        orientation = classify_ratio(width, height)
        self.logger.info("probe_classified", path=str(path), width=width, height=height, orientation=orientation.value)
        return orientation


__all__ = [
    "ASPECT_TOLERANCE",
    "Orientation",
    "MediaProber",
    "classify_ratio",
    "parse_dimensions",
]
