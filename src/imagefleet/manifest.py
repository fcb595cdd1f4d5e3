"""
Manifest reading.

The manifest is a UTF-8 text file with one image per line:

    name<TAB>repository_url[<TAB>registry]

Malformed lines are reported as `ManifestLineIssue` values instead of raising,
so one bad line never aborts a batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from pydantic import BaseModel, ConfigDict

from .errors import ManifestFileMissing


FIELD_SEPARATOR = "\t"
COMMENT_PREFIX = "#"
# Entry names become checkout directory names under the workdir.
RESERVED_NAMES = {".", ".."}
PATH_SEPARATORS = ("/", "\\")


class ManifestEntry(BaseModel):
    """
    One image to build.

    Attributes:
        name: Image name; also the checkout directory name
        repository_url: Source repository to clone or pull
        registry: Target registry (empty string means the build tool's default)
        line_number: 1-based manifest line the entry came from
    """

    model_config = ConfigDict(frozen=True)

    name: str
    repository_url: str
    registry: str = ""
    line_number: int = 0


@dataclass(frozen=True)
class ManifestLineIssue:
    """
    A manifest line that was skipped.

    Attributes:
        line_number: 1-based line number
        message: Human-readable description of the problem
        raw: The offending line without its terminator
    """

    line_number: int
    message: str
    raw: str


def _name_problem(name: str) -> str | None:
    if not name:
        return "empty image name"
    if name in RESERVED_NAMES or any(sep in name for sep in PATH_SEPARATORS):
        return f"image name {name!r} is not a plain directory name"
    return None


def parse_manifest_line(line: str, line_number: int) -> ManifestEntry | ManifestLineIssue | None:
    """
    Parse one manifest line.

    Parameters:
        line: Raw line, with or without its terminator
        line_number: 1-based position of the line in the file

    Returns:
        ManifestEntry for a valid line, ManifestLineIssue for a line with fewer
        than two fields or an unusable name or URL, None for blank and comment lines

    Example:
        >>> parse_manifest_line("api\\thttps://git.example.org/api.git\\n", 1)
        ManifestEntry(name='api', repository_url='https://git.example.org/api.git', registry='', line_number=1)
    """
    raw = line.rstrip("\r\n")
    if not raw.strip() or raw.lstrip().startswith(COMMENT_PREFIX):
        return None

    fields = [f.strip() for f in raw.split(FIELD_SEPARATOR)]
    if len(fields) < 2:
        return ManifestLineIssue(
            line_number=line_number,
            message=f"Line {line_number}: expected at least 2 tab-separated fields, got {len(fields)}",
            raw=raw,
        )

    problem = _name_problem(fields[0]) or ("empty repository URL" if not fields[1] else None)
    if problem:
        return ManifestLineIssue(
            line_number=line_number,
            message=f"Line {line_number}: {problem}",
            raw=raw,
        )

    registry = fields[2] if len(fields) > 2 else ""
    return ManifestEntry(
        name=fields[0],
        repository_url=fields[1],
        registry=registry,
        line_number=line_number,
    )


def iter_manifest(path: Path) -> Iterator[ManifestEntry | ManifestLineIssue]:
    """
    Yield entries and issues from the manifest, in file order.

    The file is opened lazily and re-read on every call, so the returned
    iterator reflects the manifest as it is when iteration starts.

    Parameters:
        path: Manifest file path

    Yields:
        ManifestEntry or ManifestLineIssue per non-blank, non-comment line

    Raises:
        ManifestFileMissing: If the manifest does not exist
    """
    if not path.is_file():
        raise ManifestFileMissing(path)

    with path.open("r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            parsed = parse_manifest_line(line, line_number)
            if parsed is not None:
                yield parsed


def read_manifest(path: Path) -> tuple[list[ManifestEntry], list[ManifestLineIssue]]:
    """Read the whole manifest and split it into entries and issues."""
    entries: list[ManifestEntry] = []
    issues: list[ManifestLineIssue] = []
    for item in iter_manifest(path):
        if isinstance(item, ManifestLineIssue):
            issues.append(item)
        else:
            entries.append(item)
    return entries, issues


def find_entry(path: Path, name: str) -> ManifestEntry | None:
    """Return the first entry called `name`, or None."""
    for item in iter_manifest(path):
        if isinstance(item, ManifestEntry) and item.name == name:
            return item
    return None
