"""Invocation of external command-line tools.

Checks never talk to a shell: every tool is run from an argument list with
captured output and a timeout. A tool that runs and reports problems returns
normally with a non-zero exit code; only a tool that cannot run at all
raises.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from storygate.errors import ToolInvocationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolOutput:
    """Captured result of one tool run.

    Attributes:
        args: The command that was run.
        returncode: Process exit status.
        stdout: Captured standard output.
        stderr: Captured standard error.
    """

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        """True when the tool exited with status 0."""
        return self.returncode == 0

    @property
    def text(self) -> str:
        """Standard output and standard error joined, empty streams omitted."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)

    @property
    def diagnostic(self) -> str:
        """Best single diagnostic: stdout, else stderr, else the exit status."""
        return (
            self.stdout.strip()
            or self.stderr.strip()
            or f"{self.args[0]} exited with status {self.returncode}"
        )


def _decode(stream: str | bytes | None) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream


def run_tool(args: Sequence[str], *, cwd: Path, timeout: float | None = None) -> ToolOutput:
    """Run an external tool and capture its output.

    Args:
        args: Command and arguments.
        cwd: Working directory (the project root).
        timeout: Seconds before the tool is killed. None waits forever.

    Returns:
        ToolOutput with exit status and decoded output.

    Raises:
        ToolInvocationError: If the executable is missing or the timeout expired.
    """
    command = [str(arg) for arg in args]
    logger.debug("Running %s (cwd=%s, timeout=%s)", command, cwd, timeout)
    try:
        completed = subprocess.run(  # noqa: S603
            command,
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        logger.debug("%s timed out after %ss", command[0], timeout)
        raise ToolInvocationError(
            command,
            f"timed out after {timeout:g} seconds",
            stdout=_decode(e.stdout),
            stderr=_decode(e.stderr),
            timed_out=True,
        ) from e
    except OSError as e:
        logger.debug("%s could not be started: %s", command[0], e)
        raise ToolInvocationError(command, f"could not be started ({e})") from e

    logger.debug("%s exited with status %d", command[0], completed.returncode)
    return ToolOutput(
        args=tuple(command),
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
