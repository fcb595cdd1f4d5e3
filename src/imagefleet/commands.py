"""
External command execution.

The pipeline drives git and the compose build tool as subprocesses. Every call
goes through a `CommandRunner` so tests can substitute a recording fake.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol, Sequence


LOGGER = logging.getLogger(__name__)

# Shell convention for "command not found".
COMMAND_NOT_FOUND = 127
CWD_NOT_FOUND = 1


@dataclass(frozen=True)
class CommandResult:
    """
    Outcome of one external command.

    Attributes:
        args: Command line that was run
        returncode: Process exit status
        stdout: Captured standard output
        stderr: Captured standard error
    """

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def details(self) -> str:
        """Most useful diagnostic text for a failed command."""
        return (self.stderr or "").strip() or (self.stdout or "").strip() or f"exit status {self.returncode}"


class CommandRunner(Protocol):
    """Minimal interface for running an external tool."""

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        ...


@dataclass
class SubprocessRunner:
    """Runs commands with `subprocess.run`, blocking until the process exits."""

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        command = tuple(str(a) for a in args)
        LOGGER.debug("run_command", extra={"command": list(command), "cwd": str(cwd) if cwd else None})
        if cwd is not None and not Path(cwd).is_dir():
            return CommandResult(
                args=command,
                returncode=CWD_NOT_FOUND,
                stderr=f"Working directory not found: {cwd}",
            )
        try:
            proc = subprocess.run(
                list(command),
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                cwd=str(cwd) if cwd is not None else None,
                env=dict(env) if env is not None else None,
            )
        except FileNotFoundError as e:
            missing = e.filename or command[0]
            return CommandResult(
                args=command,
                returncode=COMMAND_NOT_FOUND,
                stderr=f"{missing} not found. Install it and ensure it is on your PATH.",
            )
        return CommandResult(
            args=command,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
