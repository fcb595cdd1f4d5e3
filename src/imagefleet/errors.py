"""Exceptions raised by imagefleet."""

from __future__ import annotations

from pathlib import Path


class ImageFleetError(RuntimeError):
    """Raised when the build pipeline hits a known, reportable error condition."""


class ManifestFileMissing(ImageFleetError):
    """Raised when the manifest file does not exist. Aborts the whole run."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Manifest file not found: {path}")
        self.path = path
