from __future__ import annotations

from pathlib import Path
from types import TracebackType
from typing import Optional, Type

import structlog

from app.core.logging import get_logger


class ScratchFile:
    """A local path owned by one ingestion, deleted at most once.

    Deletion is best-effort: failures are logged and never raised, so they
    cannot mask the error that triggered cleanup.
    """

    def __init__(self, path: Path, *, logger: Optional[structlog.BoundLogger] = None):
        self.path = path
        self.logger = logger or get_logger(component="scratch")
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            self.logger.warning("scratch_cleanup_failed", path=str(self.path), error=str(exc))
            return
        self.logger.debug("scratch_removed", path=str(self.path))

    def __enter__(self) -> "ScratchFile":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.release()


__all__ = ["ScratchFile"]
