"""
Build tag computation.

A build tag is the build date (`YYYYMMDD`), prefixed with the repository's
version tag when one points at HEAD:

    v1.2.3 at HEAD, built 2024-01-15  ->  1.2.3.20240115
    no tag at HEAD, built 2024-01-15  ->  20240115

Tags are opaque labels; nothing here checks that they look like versions.
"""

from __future__ import annotations

import datetime as _dt
import logging
from pathlib import Path

from imagefleet.commands import CommandRunner
from imagefleet.config import DEFAULT_GIT_COMMAND


LOGGER = logging.getLogger(__name__)

DATE_TAG_FORMAT = "%Y%m%d"
VERSION_PREFIX = "v"


def date_tag(today: _dt.date | None = None) -> str:
    """Format `today` (default: the local date) as YYYYMMDD."""
    return (today or _dt.date.today()).strftime(DATE_TAG_FORMAT)


def head_tag(
    directory: Path,
    *,
    runner: CommandRunner,
    git_command: str = DEFAULT_GIT_COMMAND,
) -> str | None:
    """
    Return a tag pointing at HEAD, or None.

    When several tags point at HEAD the first line git prints wins. git lists
    them sorted by refname, so this is the lexicographically smallest name,
    which is not necessarily the highest version.
    """
    result = runner.run([git_command, "tag", "--points-at", "HEAD"], cwd=directory)
    if not result.ok:
        LOGGER.warning(f"Could not read tags in {directory}, using date tag only: {result.details()}")
        return None

    for line in result.stdout.splitlines():
        tag = line.strip()
        if tag:
            return tag
    return None


def format_build_tag(repository_tag: str | None, date: str) -> str:
    """
    Combine an optional repository tag with a date tag.

    Parameters:
        repository_tag: Tag at HEAD, or None
        date: Date tag (YYYYMMDD)

    Returns:
        `date` alone, or `"{version}.{date}"` with a single leading "v" removed

    Example:
        >>> format_build_tag("v1.2.3", "20240115")
        '1.2.3.20240115'
        >>> format_build_tag(None, "20240115")
        '20240115'
    """
    if not repository_tag:
        return date
    version = repository_tag[len(VERSION_PREFIX):] if repository_tag.startswith(VERSION_PREFIX) else repository_tag
    return f"{version}.{date}"


def compute_tag(
    directory: Path,
    date: str,
    *,
    runner: CommandRunner,
    git_command: str = DEFAULT_GIT_COMMAND,
) -> str:
    """Derive the versioned build tag for the checkout in `directory`."""
    return format_build_tag(head_tag(directory, runner=runner, git_command=git_command), date)
