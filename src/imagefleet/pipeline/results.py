"""
Result types for pipeline runs.

Every stage reports success or failure as a value; only the batch runner
decides whether to continue.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from imagefleet.manifest import ManifestLineIssue


class Stage(str, Enum):
    """Pipeline stages, in execution order."""

    SYNC = "sync"
    LOCATE_CONTEXT = "locate-context"
    BUILD_VERSIONED = "build-versioned"
    PUSH_VERSIONED = "push-versioned"
    BUILD_LATEST = "build-latest"
    PUSH_LATEST = "push-latest"


class FailureKind(str, Enum):
    """Kinds of failure a run can report."""

    MANIFEST_FILE_MISSING = "manifest-file-missing"
    MALFORMED_MANIFEST_LINE = "malformed-manifest-line"
    SYNC_FAILURE = "sync-failure"
    BUILD_CONTEXT_MISSING = "build-context-missing"
    BUILD_FAILURE = "build-failure"
    PUSH_FAILURE = "push-failure"
    IMAGE_NOT_FOUND = "image-not-found"


@dataclass(frozen=True)
class PublishResult:
    """
    Result of one build-and-push call.

    Attributes:
        built: Whether the build step succeeded
        pushed: Whether the push step succeeded (never True if built is False)
    """

    built: bool
    pushed: bool

    @property
    def success(self) -> bool:
        return self.built and self.pushed


@dataclass(frozen=True)
class PipelineResult:
    """
    Result of running the pipeline for a single manifest entry.

    Attributes:
        entry_name: Manifest entry name
        stage: Last stage reached (the failing stage when success is False)
        success: Whether every stage completed
        failure: Failure kind, None on success
        tag: Versioned tag, once computed
        elapsed_seconds: Wall time spent on this entry
    """

    entry_name: str
    stage: Stage
    success: bool
    failure: FailureKind | None = None
    tag: str | None = None
    elapsed_seconds: float = 0.0


@dataclass
class BatchOutcome:
    """
    Aggregate result of a batch or single-entry run.

    Attributes:
        results: One PipelineResult per entry that was run
        issues: Manifest lines that were skipped
        not_found: Requested entry name that was absent from the manifest
    """

    results: list[PipelineResult] = field(default_factory=list)
    issues: list[ManifestLineIssue] = field(default_factory=list)
    not_found: str | None = None

    @property
    def failed(self) -> list[PipelineResult]:
        return [r for r in self.results if not r.success]

    @property
    def succeeded(self) -> list[PipelineResult]:
        return [r for r in self.results if r.success]

    @property
    def success(self) -> bool:
        return self.not_found is None and not self.failed

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1
