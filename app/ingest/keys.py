from __future__ import annotations

import base64
import secrets

from .probe import Orientation

__all__ = ["KEY_ENTROPY_BYTES", "make_key", "make_asset_filename"]

KEY_ENTROPY_BYTES = 32


def make_key(orientation: Orientation, *, extension: str = "mp4") -> str:
    """Return a fresh storage key partitioned by orientation.

    Collision avoidance relies on 32 bytes of CSPRNG entropy; storage is never
    consulted.

    Args:
        orientation: The orientation class of the artefact.
        extension: File extension without the leading dot.

    Returns:
        A key of the form ``videos/<orientation>/<64 hex chars>.<extension>``.
    """
    token = secrets.token_hex(KEY_ENTROPY_BYTES)
    return f"videos/{Orientation(orientation).value}/{token}.{extension}"


def make_asset_filename(extension: str) -> str:
    """Return a random URL-safe filename for a public asset."""
    token = base64.urlsafe_b64encode(secrets.token_bytes(KEY_ENTROPY_BYTES)).decode("ascii").rstrip("=")
    return f"{token}.{extension.lstrip('.')}"
