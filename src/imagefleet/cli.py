"""
imagefleet CLI

Commands:
- build: Sync, tag, build and push every image in the manifest (or just one)
- list: Show the entries in the manifest
- tag: Print the build tag an already-synced image would get
"""

from __future__ import annotations

import datetime as _dt
import json
import logging
from pathlib import Path
from typing import Any

import typer

from imagefleet.commands import SubprocessRunner
from imagefleet.config import DEFAULT_MANIFEST, PipelineConfig
from imagefleet.errors import ImageFleetError
from imagefleet.manifest import find_entry, read_manifest
from imagefleet.pipeline.runner import run_batch
from imagefleet.pipeline.tags import DATE_TAG_FORMAT, compute_tag, date_tag

app = typer.Typer(add_completion=False, help="Build and publish container images for a fleet of repositories")

LOG_FILE_TEMPLATE = "imagefleet-{stamp}.log"
CONSOLE_FORMAT = "%(levelname)-7s %(message)s"


class JsonFormatter(logging.Formatter):
    """JSON-lines formatter for the session log file."""
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": _dt.datetime.fromtimestamp(record.created, _dt.timezone.utc).isoformat(),
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }
        # Include any custom attributes passed via `extra=`.
        reserved = {
            "name","msg","args","levelname","levelno","pathname","filename","module",
            "exc_info","exc_text","stack_info","lineno","funcName","created","msecs",
            "relativeCreated","thread","threadName","processName","process","taskName",
        }
        for k, v in record.__dict__.items():
            if k in reserved or k.startswith("_"):
                continue
            try:
                json.dumps(v)
                payload[k] = v
            except TypeError:
                payload[k] = repr(v)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def default_log_file() -> Path:
    stamp = _dt.datetime.now().strftime("%Y%m%d-%H%M%S")
    return Path(LOG_FILE_TEMPLATE.format(stamp=stamp))


def setup_logging(level: str, log_file: Path | None = None) -> logging.Logger:
    """
    Configure the `imagefleet` logger for one CLI session.

    Messages go to the console and, when `log_file` is given, are appended to
    that file as JSON lines. Existing handlers are replaced.
    """
    logger = logging.getLogger("imagefleet")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    handlers: list[logging.Handler] = [console]

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(JsonFormatter())
        handlers.append(file_handler)

    for old in logger.handlers:
        old.close()
    logger.handlers[:] = handlers
    logger.propagate = False
    return logger


LOGGER = logging.getLogger("imagefleet")


@app.command("build")
def build_cmd(
    name: str | None = typer.Argument(None, help="Build only the manifest entry with this name"),
    use_cache: bool = typer.Option(
        False, "--use-cache", help="Let the versioned build reuse cached layers (default: clean build)"
    ),
    manifest: Path = typer.Option(DEFAULT_MANIFEST, "--manifest", "-m", help="Tab-delimited image manifest"),
    workdir: Path = typer.Option(Path("."), "--workdir", "-w", help="Directory holding the repository checkouts"),
    log_file: Path | None = typer.Option(
        None, "--log-file", help="Session log file (default: imagefleet-<timestamp>.log)"
    ),
    log_level: str = typer.Option("INFO", "--log-level", help="Log level"),
) -> None:
    """
    Build and push images listed in the manifest.

    Each entry is synced, tagged, then built and pushed twice: once with the
    versioned tag and once as "latest". A failed entry does not stop the batch.

    Example:
        imagefleet build --manifest images.tsv
        imagefleet build api --use-cache
    """
    global LOGGER
    LOGGER = setup_logging(log_level, (log_file or default_log_file()).expanduser())

    config = PipelineConfig(
        manifest_path=manifest.expanduser(),
        workdir=workdir.expanduser(),
        use_cache=use_cache,
    )

    try:
        outcome = run_batch(config, only=name)
    except ImageFleetError as e:
        LOGGER.error(str(e))
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"\n{'='*60}")
    typer.echo("📊 Summary:")
    typer.echo(f"  Images succeeded: {len(outcome.succeeded)}")
    typer.echo(f"  Images failed: {len(outcome.failed)}")
    typer.echo(f"  Manifest lines skipped: {len(outcome.issues)}")

    if outcome.not_found is not None:
        typer.echo(f"\n❌ Image not found in manifest: {outcome.not_found}", err=True)
        raise typer.Exit(code=1)

    if outcome.failed:
        typer.echo(f"\n❌ Failed images ({len(outcome.failed)}):")
        for result in outcome.failed:
            kind = result.failure.value if result.failure else "failed"
            typer.echo(f"  - {result.entry_name}: {kind} at {result.stage.value}")
        raise typer.Exit(code=outcome.exit_code)

    for result in outcome.succeeded:
        typer.echo(f"✅ {result.entry_name}: {result.tag} ({result.elapsed_seconds:.1f}s)")


@app.command("list")
def list_cmd(
    manifest: Path = typer.Option(DEFAULT_MANIFEST, "--manifest", "-m", help="Tab-delimited image manifest"),
) -> None:
    """List the images in the manifest."""
    try:
        entries, issues = read_manifest(manifest.expanduser())
    except ImageFleetError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    for entry in entries:
        typer.echo(f"{entry.name}\t{entry.repository_url}\t{entry.registry or '(default)'}")
    for issue in issues:
        typer.echo(f"⚠️  {issue.message}", err=True)


def _parse_date(value: str | None) -> _dt.date | None:
    if value is None:
        return None
    try:
        return _dt.datetime.strptime(value, DATE_TAG_FORMAT).date()
    except ValueError as e:
        raise typer.BadParameter(f"expected YYYYMMDD, got {value!r}", param_hint="--date") from e


@app.command("tag")
def tag_cmd(
    name: str = typer.Argument(..., help="Manifest entry name"),
    manifest: Path = typer.Option(DEFAULT_MANIFEST, "--manifest", "-m", help="Tab-delimited image manifest"),
    workdir: Path = typer.Option(Path("."), "--workdir", "-w", help="Directory holding the repository checkouts"),
    date: str | None = typer.Option(None, "--date", help="Build date as YYYYMMDD (default: today)"),
) -> None:
    """Print the versioned tag for an already-synced image, without building."""
    build_date = date_tag(_parse_date(date))
    config = PipelineConfig(manifest_path=manifest.expanduser(), workdir=workdir.expanduser())

    try:
        entry = find_entry(config.manifest_path, name)
    except ImageFleetError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if entry is None:
        typer.echo(f"Error: Image not found in manifest: {name}", err=True)
        raise typer.Exit(code=1)

    repo_dir = config.repository_dir(entry.name)
    if not repo_dir.is_dir():
        typer.echo(f"Error: Repository not synced yet: {repo_dir}", err=True)
        raise typer.Exit(code=1)

    typer.echo(compute_tag(repo_dir, build_date, runner=SubprocessRunner(), git_command=config.git_command))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
