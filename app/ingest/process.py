from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from app.core.errors import ProcessingFailed
from app.core.logging import get_logger


@dataclass(slots=True, frozen=True)
class ProcessResult:
    """Outcome of one external tool invocation."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessRunner(Protocol):
    def run(self, command: str, args: Sequence[str]) -> ProcessResult: ...


class SubprocessRunner:
    """Runs a tool to completion, draining stdout and stderr before returning.

    ``timeout_s`` of ``None`` waits indefinitely.
    """

    def __init__(self, timeout_s: Optional[float] = None):
        self.timeout_s = timeout_s
        self.logger = get_logger(component="process_runner")

    def run(self, command: str, args: Sequence[str]) -> ProcessResult:
        argv = [command, *args]
        self.logger.debug("process_started", argv=argv)
        try:
            proc = subprocess.run(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                timeout=self.timeout_s,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            stderr = exc.stderr.decode(errors="replace") if isinstance(exc.stderr, bytes) else exc.stderr
            raise ProcessingFailed(f"{command} timed out after {self.timeout_s}s", detail=stderr) from exc
        except FileNotFoundError as exc:
            raise ProcessingFailed(f"{command} is not installed", detail=str(exc)) from exc
        except OSError as exc:
            raise ProcessingFailed(f"{command} could not be started", detail=str(exc)) from exc

        self.logger.debug("process_finished", command=command, exit_code=proc.returncode)
        return ProcessResult(exit_code=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)


__all__ = ["ProcessResult", "ProcessRunner", "SubprocessRunner"]
