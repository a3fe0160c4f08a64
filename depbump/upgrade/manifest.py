"""
manifest.py - Dependency declarations from pyproject.toml.

Only reads the manifest; uv does all writing.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

from .graph import SourceKind

logger = logging.getLogger(__name__)


@dataclass
class Declaration:
    """How the project declares one dependency."""

    name: str
    requirement: str | None = None
    source: SourceKind = SourceKind.REGISTRY
    in_main: bool = False
    groups: set[str] = field(default_factory=set)
    extras: set[str] = field(default_factory=set)

    @property
    def allowed_envs(self) -> frozenset[str] | None:
        """Groups and extras the package is limited to, or None if always installed."""
        if self.in_main or not (self.groups or self.extras):
            return None
        return frozenset(self.groups | self.extras)

    def uv_add_flags(self) -> list[str]:
        """Flags that make `uv add` edit the list this package is declared in."""
        if self.in_main:
            return []
        if self.groups:
            return ["--group", sorted(self.groups)[0]]
        if self.extras:
            return ["--optional", sorted(self.extras)[0]]
        return []


def source_kind(table: dict[str, Any]) -> SourceKind:
    """Classify a uv source table ({ git = ... }, { path = ..., editable = true }, ...)."""
    if "git" in table:
        return SourceKind.GIT
    if "url" in table:
        return SourceKind.URL
    # uv.lock writes { editable = "." }, pyproject writes { path = ..., editable = true }
    editable = table.get("editable")
    if isinstance(editable, str) or editable is True or "virtual" in table:
        return SourceKind.EDITABLE
    if "path" in table or "directory" in table or "workspace" in table:
        return SourceKind.PATH
    return SourceKind.REGISTRY


def load_manifest(manifest_path: Path) -> dict[str, Any]:
    with open(manifest_path, "rb") as f:
        return tomllib.load(f)


def _parse_requirement(raw: str) -> Requirement | None:
    try:
        return Requirement(raw)
    except InvalidRequirement as e:
        logger.warning("Skipping unparseable requirement %r: %s", raw, e)
        return None


def _declare(
    declarations: dict[str, Declaration],
    raw: object,
    group: str | None = None,
    extra: str | None = None,
) -> None:
    # dependency-groups may contain { include-group = "..." } tables
    if not isinstance(raw, str):
        return
    req = _parse_requirement(raw)
    if req is None:
        return

    name = canonicalize_name(req.name)
    decl = declarations.setdefault(name, Declaration(name=name))
    if group is None and extra is None:
        decl.in_main = True
        decl.requirement = str(req.specifier) or decl.requirement
    else:
        if group is not None:
            decl.groups.add(group)
        if extra is not None:
            decl.extras.add(extra)
        decl.requirement = decl.requirement or (str(req.specifier) or None)
    if req.url:
        decl.source = SourceKind.URL


def read_declarations(manifest_path: Path) -> dict[str, Declaration]:
    """Collect every dependency the manifest declares.

    Sources:
    - [project].dependencies (always installed)
    - [project.optional-dependencies] and [dependency-groups] (per group)
    - [tool.uv].dev-dependencies (legacy "dev" group)
    - [tool.uv.sources] (path, git, url, editable overrides)

    Returns:
        Dict mapping normalized package name to Declaration
    """
    data = load_manifest(manifest_path)
    project = data.get("project", {})
    uv_tool = data.get("tool", {}).get("uv", {})

    declarations: dict[str, Declaration] = {}

    for raw in project.get("dependencies", []):
        _declare(declarations, raw)

    for extra, items in project.get("optional-dependencies", {}).items():
        for raw in items:
            _declare(declarations, raw, extra=extra)

    for group, items in data.get("dependency-groups", {}).items():
        for raw in items:
            _declare(declarations, raw, group=group)

    for raw in uv_tool.get("dev-dependencies", []):
        _declare(declarations, raw, group="dev")

    for raw_name, table in uv_tool.get("sources", {}).items():
        # A list means several sources split by markers; the first one decides
        if isinstance(table, list):
            table = table[0] if table else {}
        name = canonicalize_name(raw_name)
        if name in declarations and isinstance(table, dict):
            declarations[name].source = source_kind(table)

    return declarations
