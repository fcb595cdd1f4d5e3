"""Repository synchronization: clone when absent, pull when present."""

from __future__ import annotations

import logging
from pathlib import Path

from imagefleet.commands import CommandRunner
from imagefleet.config import DEFAULT_GIT_COMMAND


LOGGER = logging.getLogger(__name__)


def sync_repository(
    directory: Path,
    repository_url: str,
    *,
    runner: CommandRunner,
    git_command: str = DEFAULT_GIT_COMMAND,
) -> bool:
    """
    Bring `directory` up to date with `repository_url`.

    If the directory exists, runs `git pull` inside it; otherwise clones the
    repository into it. Failures are logged and reported as False, never
    raised, and never retried.

    Parameters:
        directory: Checkout directory
        repository_url: Repository to clone from
        runner: Command runner used to invoke git
        git_command: git executable

    Returns:
        True if the clone or pull succeeded
    """
    if directory.exists():
        action = "pull"
        result = runner.run([git_command, "pull"], cwd=directory)
    else:
        action = "clone"
        directory.parent.mkdir(parents=True, exist_ok=True)
        result = runner.run([git_command, "clone", repository_url, str(directory)])

    if not result.ok:
        LOGGER.error(
            f"git {action} failed for {directory}: {result.details()}",
            extra={"directory": str(directory), "repository_url": repository_url},
        )
        return False

    LOGGER.info(f"git {action} succeeded for {directory}")
    return True
