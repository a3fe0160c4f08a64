"""
resolver.py - Handing the actual update to the package manager.

The engine never resolves versions itself. It builds a ResolveRequest and
passes it to a Resolver; UvResolver drives `uv add`, `uv lock` and `uv sync`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from depbump.retry_utils import TransientError, retry_transient
from depbump.shared import output_tail, run_command, run_streaming_command

from .errors import ResolutionAborted, ResolutionError
from .lockfile import LOCK_FILENAME
from .packages import PackageSpec

logger = logging.getLogger(__name__)

# Exit status of a process killed by Ctrl-C
INTERRUPTED_RETURNCODE = 130

TRANSIENT_INDICATORS = (
    "error sending request",
    "connection reset",
    "connection refused",
    "operation timed out",
    "request failed after",
    "dns error",
)


@dataclass
class ResolveRequest:
    """What to update and how."""

    packages: list[PackageSpec] = field(default_factory=list)
    upgrade_all: bool = False
    only: str | None = None
    target: str | None = None
    skip_archive_check: bool = False
    yes: bool = False
    # Extra `uv add` flags per pinned package (--group / --optional)
    add_flags: dict[str, list[str]] = field(default_factory=dict)

    @property
    def names(self) -> list[str]:
        return [spec.name for spec in self.packages]

    @property
    def requirements(self) -> dict[str, str]:
        """Requirement strings of the pinned packages, keyed by package name."""
        pins = {spec.name: spec.requirement() for spec in self.packages}
        return {name: requirement for name, requirement in pins.items() if requirement}


class Resolver(Protocol):
    """Anything that can update the manifest and lock file for a request.

    Must raise ResolutionError (or ResolutionAborted) on failure.
    """

    def resolve(self, request: ResolveRequest) -> None: ...


def _is_transient(output: str) -> bool:
    lowered = output.lower()
    return any(indicator in lowered for indicator in TRANSIENT_INDICATORS)


class UvResolver:
    """Resolver backed by the uv command line."""

    def __init__(
        self,
        project_dir: Path,
        printer: Any = None,
        confirm: Callable[[str], bool] | None = None,
        uv: str = "uv",
        attempts: int = 3,
        wait_min: float = 2,
        wait_max: float = 10,
    ):
        self.project_dir = project_dir
        self.printer = printer
        self.confirm = confirm
        self.uv = uv
        self.attempts = attempts
        self.wait_min = wait_min
        self.wait_max = wait_max

    # ─────────────────────────────────────────────────────────────────────────
    # Command lines
    # ─────────────────────────────────────────────────────────────────────────

    def add_commands(self, request: ResolveRequest) -> list[list[str]]:
        commands = []
        for name, requirement in request.requirements.items():
            flags = request.add_flags.get(name, [])
            commands.append([self.uv, "add", requirement, "--no-sync", *flags])
        return commands

    def lock_command(self, request: ResolveRequest) -> list[str]:
        cmd = [self.uv, "lock"]
        if request.upgrade_all:
            cmd.append("--upgrade")
        else:
            for name in request.names:
                cmd.extend(["--upgrade-package", name])
        return cmd

    def sync_command(self, request: ResolveRequest) -> list[str]:
        cmd = [self.uv, "sync"]
        if request.only:
            cmd.extend(["--only-group", request.only])
        if request.target:
            cmd.extend(["--python-platform", request.target])
        return cmd

    # ─────────────────────────────────────────────────────────────────────────
    # Execution
    # ─────────────────────────────────────────────────────────────────────────

    def check_toolchain(self) -> None:
        """Make sure uv is callable and the project is locked before touching anything."""
        success, output = run_command([self.uv, "--version"], cwd=self.project_dir)
        if not success:
            raise ResolutionError(f"Could not run {self.uv}: {output or 'not found'}")
        logger.debug("Using %s", output)
        if not (self.project_dir / LOCK_FILENAME).exists():
            raise ResolutionError(f"No {LOCK_FILENAME} in {self.project_dir}; run `uv lock` first")

    def _run(self, cmd: list[str], label: str, retryable: bool = False) -> str:
        if self.printer:
            self.printer.action(label)
        try:
            returncode, output = run_streaming_command(
                cmd,
                cwd=self.project_dir,
                printer=self.printer,
                skip_blank_lines=True,
            )
        except KeyboardInterrupt as e:
            raise ResolutionAborted(f"{label} interrupted") from e
        except OSError as e:
            raise ResolutionError(f"Could not run {cmd[0]}: {e}") from e

        if returncode == INTERRUPTED_RETURNCODE:
            raise ResolutionAborted(f"{label} interrupted", output=output)
        if returncode != 0:
            if retryable and _is_transient(output):
                if self.printer:
                    self.printer.warn("Network error talking to the package index, retrying")
                raise TransientError(output)
            raise ResolutionError(f"{label} failed:\n{output_tail(output)}", output=output)
        return output

    def _confirm_pins(self, request: ResolveRequest) -> None:
        if request.yes or not request.requirements:
            return
        requirements = ", ".join(request.requirements.values())
        if self.confirm is None or not self.confirm(f"Update pyproject.toml requirements: {requirements}?"):
            raise ResolutionAborted("Requirement changes were not accepted")

    def resolve(self, request: ResolveRequest) -> None:
        """Update pinned requirements, relock and sync.

        Raises:
            ResolutionAborted: If the operator declined or interrupted
            ResolutionError: If any uv step failed
        """
        if not request.skip_archive_check:
            self.check_toolchain()

        self._confirm_pins(request)
        for cmd in self.add_commands(request):
            self._run(cmd, f"Requiring {cmd[2]}")

        lock = retry_transient(self.attempts, self.wait_min, self.wait_max)(self._run)
        try:
            lock(self.lock_command(request), "Updating uv.lock", retryable=True)
        except TransientError as e:
            raise ResolutionError(f"Updating uv.lock failed:\n{output_tail(str(e))}", output=str(e)) from e

        self._run(self.sync_command(request), "Syncing environment")
