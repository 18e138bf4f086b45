from __future__ import annotations

import shutil
from pathlib import Path
from typing import BinaryIO, Dict

from .keys import make_asset_filename

EXTENSIONS: Dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
}


def extension_for(media_type: str) -> str:
    try:
        return EXTENSIONS[media_type]
    except KeyError:
        raise ValueError(f"no extension registered for {media_type!r}") from None


def write_thumbnail(assets_root: Path, source: BinaryIO, media_type: str) -> Path:
    """Copy an image into the public assets directory under a random name."""
    assets_root.mkdir(parents=True, exist_ok=True)
    target = assets_root / make_asset_filename(extension_for(media_type))
    try:
        with target.open("wb") as handle:
            shutil.copyfileobj(source, handle, length=1024 * 1024)
    except OSError:
        target.unlink(missing_ok=True)
        raise
    return target


__all__ = ["EXTENSIONS", "extension_for", "write_thumbnail"]
