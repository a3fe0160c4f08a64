"""
Project detection and settings for depbump.

Finds the project root, the files an upgrade touches, and the optional
[tool.depbump] table in pyproject.toml.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from depbump.shared import run_command
from depbump.upgrade.hooks import HOOK_GROUP
from depbump.upgrade.lockfile import LOCK_FILENAME
from depbump.upgrade.manifest import load_manifest
from depbump.upgrade.summary import SUMMARY_FILENAME

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "pyproject.toml"
DEFAULT_ENV = "dev"


@dataclass
class ProjectFiles:
    """Paths of everything an upgrade reads or writes."""

    project_root: Path
    summary_name: str = SUMMARY_FILENAME

    @property
    def manifest(self) -> Path:
        return self.project_root / MANIFEST_FILENAME

    @property
    def lock(self) -> Path:
        return self.project_root / LOCK_FILENAME

    @property
    def summary(self) -> Path:
        return self.project_root / self.summary_name

    @property
    def venv(self) -> Path:
        env_venv = os.environ.get("UV_PROJECT_ENVIRONMENT")
        if env_venv:
            return Path(env_venv).expanduser()
        return self.project_root / ".venv"

    @property
    def protected(self) -> list[Path]:
        """Files restored when an upgrade fails."""
        return [self.manifest, self.lock]


@dataclass
class Settings:
    """Options from [tool.depbump], with environment overrides."""

    project_name: str | None = None
    summary_file: str = SUMMARY_FILENAME
    environment: str = DEFAULT_ENV
    hook_group: str = HOOK_GROUP
    uv: str = "uv"


def find_project_root() -> Path:
    """Find the root of the project to upgrade."""
    env_root = os.environ.get("DEPBUMP_PROJECT_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()

    success, output = run_command(["git", "rev-parse", "--show-toplevel"])
    if success and output:
        git_root = Path(output)
        if (git_root / MANIFEST_FILENAME).exists():
            return git_root

    cwd = Path.cwd().resolve()
    for candidate in (cwd, *cwd.parents):
        if (candidate / MANIFEST_FILENAME).exists():
            return candidate

    raise RuntimeError(f"Could not find a {MANIFEST_FILENAME} in {cwd} or its parents")


def load_settings(project_root: Path) -> Settings:
    """Read [tool.depbump] from the manifest; DEPBUMP_ENV overrides the environment."""
    settings = Settings()
    manifest = project_root / MANIFEST_FILENAME
    if manifest.exists():
        data = load_manifest(manifest)
        settings.project_name = data.get("project", {}).get("name")
        table = data.get("tool", {}).get("depbump", {})
        settings.summary_file = table.get("summary-file", settings.summary_file)
        settings.environment = table.get("environment", settings.environment)
        settings.hook_group = table.get("hook-group", settings.hook_group)
        settings.uv = table.get("uv", settings.uv)
        unknown = set(table) - {"summary-file", "environment", "hook-group", "uv"}
        if unknown:
            logger.warning("Ignoring unknown [tool.depbump] keys: %s", ", ".join(sorted(unknown)))

    env = os.environ.get("DEPBUMP_ENV")
    if env:
        settings.environment = env
    return settings


def get_project_files(project_root: Path, settings: Settings) -> ProjectFiles:
    return ProjectFiles(project_root=project_root, summary_name=settings.summary_file)
