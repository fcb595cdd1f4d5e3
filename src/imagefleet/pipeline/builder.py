"""
Image build and push through the compose build tool.

The compose file inside each build context reads its target registry and tag
from the environment (`REGISTRY` and `TAG`). `ComposeSettings` is the only
place that knows about that contract; callers pass explicit values.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

from pydantic import BaseModel, ConfigDict

from imagefleet.commands import CommandRunner
from imagefleet.config import DEFAULT_COMPOSE_COMMAND

from .results import PublishResult


LOGGER = logging.getLogger(__name__)

REGISTRY_ENV = "REGISTRY"
TAG_ENV = "TAG"


class ComposeSettings(BaseModel):
    """
    Registry and tag handed to the compose build tool.

    Attributes:
        registry: Target registry; empty means the tool's default
        tag: Target tag; None lets the tool fall back to its default ("latest")
    """

    model_config = ConfigDict(frozen=True)

    registry: str = ""
    tag: str | None = None

    def apply(self, base_env: Mapping[str, str]) -> dict[str, str]:
        """
        Return a copy of `base_env` carrying these settings.

        An inherited TAG is removed when no tag is set, so a value left over
        from the caller's shell cannot leak into a "latest" build.
        """
        env = dict(base_env)
        env[REGISTRY_ENV] = self.registry
        if self.tag is None:
            env.pop(TAG_ENV, None)
        else:
            env[TAG_ENV] = self.tag
        return env


@dataclass
class ComposeImageBuilder:
    """Builds and pushes the image defined by a build context's compose file."""

    runner: CommandRunner
    compose_command: Sequence[str] = DEFAULT_COMPOSE_COMMAND
    base_env: Mapping[str, str] | None = None

    def build_and_push(
        self,
        context_dir: Path,
        *,
        use_cache: bool,
        registry: str,
        tag: str | None = None,
    ) -> PublishResult:
        """
        Build the image in `context_dir`, then push it.

        Parameters:
            context_dir: Build context containing the compose file
            use_cache: When False the build bypasses the layer cache
            registry: Target registry (may be empty)
            tag: Target tag, or None for the tool's default tag

        Returns:
            PublishResult; push is not attempted when the build fails
        """
        settings = ComposeSettings(registry=registry, tag=tag)
        env = settings.apply(os.environ if self.base_env is None else self.base_env)
        label = tag or "latest"

        build_args = [*self.compose_command, "build"]
        if not use_cache:
            build_args.append("--no-cache")

        LOGGER.info(f"Building {label} in {context_dir} (cache {'on' if use_cache else 'off'})")
        build = self.runner.run(build_args, cwd=context_dir, env=env)
        if not build.ok:
            LOGGER.error(
                f"Build of {label} failed in {context_dir}: {build.details()}",
                extra={"tag": label, "registry": registry},
            )
            return PublishResult(built=False, pushed=False)

        LOGGER.info(f"Pushing {label} to {registry or 'default registry'}")
        push = self.runner.run([*self.compose_command, "push"], cwd=context_dir, env=env)
        if not push.ok:
            LOGGER.error(
                f"Push of {label} failed from {context_dir}: {push.details()}",
                extra={"tag": label, "registry": registry},
            )
            return PublishResult(built=True, pushed=False)

        return PublishResult(built=True, pushed=True)
