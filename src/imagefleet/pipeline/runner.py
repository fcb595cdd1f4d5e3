"""
Per-image pipeline and batch runner.

For each manifest entry, strictly in order:

    sync -> locate build context -> compute tag
         -> build + push versioned tag -> build + push "latest"

Any stage failure ends that entry's pipeline; the batch continues with the
next entry. The process working directory is never changed: the build context
is passed to every external command as an explicit `cwd`.
"""

from __future__ import annotations

import datetime as _dt
import logging
import time

from imagefleet.commands import CommandRunner, SubprocessRunner
from imagefleet.config import PipelineConfig
from imagefleet.errors import ImageFleetError, ManifestFileMissing
from imagefleet.manifest import ManifestEntry, ManifestLineIssue, iter_manifest

from .builder import ComposeImageBuilder
from .repository import sync_repository
from .results import BatchOutcome, FailureKind, PipelineResult, Stage
from .tags import compute_tag, date_tag


LOGGER = logging.getLogger(__name__)

# The "latest" build always reuses cached layers, even when the versioned
# build ran with --no-cache moments earlier.
LATEST_ALWAYS_USES_CACHE = True


def run_pipeline(
    entry: ManifestEntry,
    *,
    config: PipelineConfig,
    builder: ComposeImageBuilder,
    runner: CommandRunner,
    build_date: str,
) -> PipelineResult:
    """
    Run the full pipeline for one manifest entry.

    Parameters:
        entry: Manifest entry to build
        config: Batch-wide settings (workdir, cache preference, tool commands)
        builder: Image builder used for both publish steps
        runner: Command runner used for git
        build_date: Date tag (YYYYMMDD) shared by the whole batch

    Returns:
        PipelineResult naming the last stage reached and, on failure, its kind
    """
    start_time = time.perf_counter()
    stage = Stage.SYNC
    tag: str | None = None

    def finish(failure: FailureKind | None = None) -> PipelineResult:
        return PipelineResult(
            entry_name=entry.name,
            stage=stage,
            success=failure is None,
            failure=failure,
            tag=tag,
            elapsed_seconds=time.perf_counter() - start_time,
        )

    repo_dir = config.repository_dir(entry.name)
    context_dir = config.build_context(entry.name)
    log_extra = {"entry": entry.name}

    try:
        if not sync_repository(repo_dir, entry.repository_url, runner=runner, git_command=config.git_command):
            LOGGER.error(f"[{entry.name}] repository sync failed", extra={**log_extra, "stage": stage.value})
            return finish(FailureKind.SYNC_FAILURE)

        stage = Stage.LOCATE_CONTEXT
        if not context_dir.is_dir():
            LOGGER.error(
                f"[{entry.name}] build context not found: {context_dir}",
                extra={**log_extra, "stage": stage.value},
            )
            return finish(FailureKind.BUILD_CONTEXT_MISSING)

        stage = Stage.BUILD_VERSIONED
        tag = compute_tag(repo_dir, build_date, runner=runner, git_command=config.git_command)
        LOGGER.info(f"[{entry.name}] build tag {tag}", extra={**log_extra, "tag": tag})

        published = builder.build_and_push(
            context_dir,
            use_cache=config.use_cache,
            registry=entry.registry,
            tag=tag,
        )
        if not published.success:
            if published.built:
                stage = Stage.PUSH_VERSIONED
            LOGGER.error(f"[{entry.name}] {stage.value} failed", extra={**log_extra, "stage": stage.value, "tag": tag})
            return finish(FailureKind.PUSH_FAILURE if published.built else FailureKind.BUILD_FAILURE)

        stage = Stage.BUILD_LATEST
        published = builder.build_and_push(
            context_dir,
            use_cache=LATEST_ALWAYS_USES_CACHE,
            registry=entry.registry,
            tag=None,
        )
        if not published.success:
            if published.built:
                stage = Stage.PUSH_LATEST
            LOGGER.error(f"[{entry.name}] {stage.value} failed", extra={**log_extra, "stage": stage.value})
            return finish(FailureKind.PUSH_FAILURE if published.built else FailureKind.BUILD_FAILURE)

        stage = Stage.PUSH_LATEST
        LOGGER.info(f"[{entry.name}] published {tag} and latest", extra={**log_extra, "tag": tag})
        return finish()

    except (ImageFleetError, OSError) as e:
        LOGGER.exception(f"[{entry.name}] {stage.value} raised: {e}", extra={**log_extra, "stage": stage.value})
        return finish(_failure_for_stage(stage))


def _failure_for_stage(stage: Stage) -> FailureKind:
    if stage is Stage.SYNC:
        return FailureKind.SYNC_FAILURE
    if stage is Stage.LOCATE_CONTEXT:
        return FailureKind.BUILD_CONTEXT_MISSING
    if stage in (Stage.PUSH_VERSIONED, Stage.PUSH_LATEST):
        return FailureKind.PUSH_FAILURE
    return FailureKind.BUILD_FAILURE


def run_batch(
    config: PipelineConfig,
    *,
    only: str | None = None,
    builder: ComposeImageBuilder | None = None,
    runner: CommandRunner | None = None,
    today: _dt.date | None = None,
) -> BatchOutcome:
    """
    Run the pipeline for every manifest entry, or only the one named `only`.

    Malformed manifest lines are skipped with one warning each. A failed entry
    never stops the batch; the outcome fails if any entry failed or if `only`
    names an entry that is not in the manifest.

    Parameters:
        config: Batch-wide settings
        only: Run just the first entry with this name
        builder: Image builder (default: compose builder over `runner`)
        runner: Command runner (default: SubprocessRunner)
        today: Build date (default: local today), shared by every entry

    Returns:
        BatchOutcome with one PipelineResult per entry run

    Raises:
        ManifestFileMissing: If the manifest does not exist; no entry is run
    """
    if not config.manifest_path.is_file():
        raise ManifestFileMissing(config.manifest_path)

    runner = runner or SubprocessRunner()
    builder = builder or ComposeImageBuilder(runner=runner, compose_command=config.compose_command)
    build_date = date_tag(today)
    outcome = BatchOutcome()

    for item in iter_manifest(config.manifest_path):
        if isinstance(item, ManifestLineIssue):
            LOGGER.warning(f"Skipping malformed manifest line: {item.message}", extra={"line_number": item.line_number})
            outcome.issues.append(item)
            continue

        if only is not None and item.name != only:
            continue

        LOGGER.info(f"[{item.name}] starting pipeline", extra={"entry": item.name})
        outcome.results.append(
            run_pipeline(item, config=config, builder=builder, runner=runner, build_date=build_date)
        )

        if only is not None:
            break

    if only is not None and not outcome.results:
        outcome.not_found = only
        LOGGER.error(
            f"Image not found in manifest: {only}",
            extra={"entry": only, "failure": FailureKind.IMAGE_NOT_FOUND.value},
        )

    _log_summary(outcome)
    return outcome


def _log_summary(outcome: BatchOutcome) -> None:
    LOGGER.info(
        f"Batch finished: {len(outcome.succeeded)} succeeded, {len(outcome.failed)} failed, "
        f"{len(outcome.issues)} manifest line(s) skipped"
    )
    for result in outcome.failed:
        LOGGER.error(f"  {result.entry_name}: {result.failure.value if result.failure else 'failed'} at {result.stage.value}")
