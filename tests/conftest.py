"""Shared fixtures: a recording command runner and manifest helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

import pytest

from imagefleet.commands import CommandResult


@dataclass
class Call:
    args: tuple[str, ...]
    cwd: Path | None
    env: dict[str, str] | None


# A result, a callable producing one, or a list consumed one per call.
Response = object


@dataclass
class FakeRunner:
    """
    Records every command and answers from `responses`.

    Keys are argument prefixes; the longest matching prefix wins. A list value
    is consumed one result per call. Unmatched commands succeed with no output.
    """

    responses: dict[tuple[str, ...], Response] = field(default_factory=dict)
    calls: list[Call] = field(default_factory=list)

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        call = Call(args=tuple(args), cwd=cwd, env=dict(env) if env is not None else None)
        self.calls.append(call)

        matches = [p for p in self.responses if call.args[: len(p)] == p]
        if not matches:
            return CommandResult(args=call.args, returncode=0)

        response = self.responses[max(matches, key=len)]
        if isinstance(response, list):
            response = response.pop(0)
        if callable(response):
            return response(call)
        return response

    def commands(self, *prefix: str) -> list[Call]:
        """Calls whose arguments start with `prefix`."""
        return [c for c in self.calls if c.args[: len(prefix)] == prefix]


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(args=(), returncode=0, stdout=stdout)


def failed(stderr: str = "boom", returncode: int = 1) -> CommandResult:
    return CommandResult(args=(), returncode=returncode, stderr=stderr)


def write_manifest(path: Path, lines: list[str]) -> Path:
    path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
    return path


def make_context(workdir: Path, name: str) -> Path:
    context = workdir / name / "compose-build"
    context.mkdir(parents=True)
    return context


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture(autouse=True)
def reset_imagefleet_logger():
    """Undo CLI logging setup so caplog sees records in every test."""
    yield
    logger = logging.getLogger("imagefleet")
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = []
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
