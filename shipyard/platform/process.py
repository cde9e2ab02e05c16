"""Subprocess execution with structured errors.

External tools (xcodebuild, codesign, hdiutil, notarytool, sign_update)
are only ever invoked through these functions so stages can be exercised
with an injected runner in tests.

Usage:
    result = run(["codesign", "-v", str(app)], cwd=Path("."))
    match result:
        case Ok(stdout):
            ...
        case Err(error):
            print(error.tail())
"""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from shipyard.core.result import Err, Ok, Result

__all__ = ["CommandRunner", "ProcessError", "ToolLookup", "run", "which"]


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A subprocess that exited non-zero or could not be spawned.

    ``returncode`` is -1 when the executable could not be started.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        return f"{cmd_str} failed (exit {self.returncode})"

    def tail(self, lines: int = 20) -> str:
        """Last ``lines`` lines of combined output, for diagnostics."""
        combined = "\n".join(part for part in (self.stdout, self.stderr) if part.strip())
        return "\n".join(combined.rstrip().splitlines()[-lines:])


class CommandRunner(Protocol):
    def __call__(
        self,
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]: ...


class ToolLookup(Protocol):
    def __call__(self, name: str) -> str | None: ...


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Execute a command and return its stdout or a ProcessError.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Environment variables (uses current env if None).
        timeout: Maximum seconds to wait (None for no limit).
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout=e.stdout if isinstance(e.stdout, str) else "",
                stderr=f"Command timed out after {timeout}s",
            )
        )
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr=str(e)))

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
            )
        )

    return Ok(proc.stdout)


def which(name: str) -> str | None:
    return shutil.which(name)
