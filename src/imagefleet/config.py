"""
Runtime configuration for a build run.

Values are collected from CLI options and passed explicitly to the pipeline;
nothing below reads ambient process state.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_MANIFEST = Path("images.tsv")
DEFAULT_CONTEXT_DIR = "compose-build"
DEFAULT_GIT_COMMAND = "git"
DEFAULT_COMPOSE_COMMAND = ("docker", "compose")


class PipelineConfig(BaseModel):
    """
    Settings shared by every entry of one batch run.

    Attributes:
        manifest_path: Tab-delimited manifest listing the images to build
        workdir: Directory holding one checkout per manifest entry
        use_cache: Allow the versioned build to reuse cached layers
        context_dir: Name of the build-context directory inside each checkout
        git_command: git executable
        compose_command: Command prefix for the compose build tool
    """

    model_config = ConfigDict(frozen=True)

    manifest_path: Path = DEFAULT_MANIFEST
    workdir: Path = Field(default_factory=Path)
    use_cache: bool = False
    context_dir: str = DEFAULT_CONTEXT_DIR
    git_command: str = DEFAULT_GIT_COMMAND
    compose_command: tuple[str, ...] = DEFAULT_COMPOSE_COMMAND

    def repository_dir(self, name: str) -> Path:
        """Checkout directory for the entry called `name`."""
        return self.workdir / name

    def build_context(self, name: str) -> Path:
        """Build-context directory for the entry called `name`."""
        return self.repository_dir(name) / self.context_dir
