"""
graph.py - Dependency snapshots and version deltas.

Core data model for depbump upgrade. The host package manager hands over a
nested tree of HostDependency objects; flatten_graph turns it into an
immutable DependencyGraph (name -> node, children referenced by name) that can
be compared against a second snapshot taken after resolution.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from packaging.version import InvalidVersion, Version

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Dataclasses
# ═══════════════════════════════════════════════════════════════════════════════


class SourceKind(str, Enum):
    """Where a dependency comes from."""

    REGISTRY = "registry"
    PATH = "path"
    EDITABLE = "editable"
    GIT = "git"
    URL = "url"

    @property
    def version_upgradable(self) -> bool:
        """Only registry packages can be moved to an explicit version."""
        return self is SourceKind.REGISTRY


@dataclass
class HostDependency:
    """One dependency as reported by the host package manager.

    Children are nested HostDependency objects and may be shared between
    parents, so the structure can contain cycles.
    """

    name: str
    version: str | None  # None when the host could not resolve it
    requirement: str | None = None
    children: list[HostDependency] = field(default_factory=list)
    source: SourceKind = SourceKind.REGISTRY
    allowed_envs: frozenset[str] | None = None
    top_level: bool = False
    location: Path | None = None


@dataclass(frozen=True)
class DependencyNode:
    """Immutable snapshot of a single dependency."""

    name: str
    version: str | None
    requirement: str | None = None
    children: tuple[str, ...] = ()
    source: SourceKind = SourceKind.REGISTRY
    allowed_envs: frozenset[str] | None = None
    top_level: bool = False
    location: Path | None = None

    @property
    def resolved(self) -> bool:
        return self.version is not None

    def allowed_in(self, env: str) -> bool:
        """True unless the node is restricted to other environments."""
        return not self.allowed_envs or env in self.allowed_envs

    @classmethod
    def from_host(cls, dep: HostDependency) -> DependencyNode:
        return cls(
            name=dep.name,
            version=dep.version,
            requirement=dep.requirement,
            children=tuple(child.name for child in dep.children),
            source=dep.source,
            allowed_envs=dep.allowed_envs,
            top_level=dep.top_level,
            location=dep.location,
        )


class DependencyGraph:
    """Arena of DependencyNode keyed by name, in snapshot order."""

    def __init__(self, nodes: Iterable[DependencyNode] = ()):
        self._nodes: dict[str, DependencyNode] = {}
        for node in nodes:
            self._nodes.setdefault(node.name, node)

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __iter__(self) -> Iterator[DependencyNode]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"DependencyGraph({list(self._nodes)!r})"

    def get(self, name: str) -> DependencyNode | None:
        return self._nodes.get(name)

    def resolved(self) -> DependencyGraph:
        return DependencyGraph(node for node in self if node.resolved)

    def top_level(self) -> list[DependencyNode]:
        return [node for node in self if node.top_level]


@dataclass(frozen=True)
class VersionDelta:
    """A package that moved between two snapshots.

    old_version is None for a dependency that did not exist (or was not
    resolved) before the update.
    """

    name: str
    old_version: str | None
    new_version: str

    @property
    def is_new(self) -> bool:
        return self.old_version is None

    def __str__(self) -> str:
        return f"{self.name}:{self.old_version or ''}:{self.new_version}"


# ═══════════════════════════════════════════════════════════════════════════════
# Snapshot Reader
# ═══════════════════════════════════════════════════════════════════════════════


def _unique_by_name(deps: Iterable[HostDependency]) -> list[HostDependency]:
    seen: set[str] = set()
    unique: list[HostDependency] = []
    for dep in deps:
        if dep.name not in seen:
            seen.add(dep.name)
            unique.append(dep)
    return unique


def flatten_graph(roots: Iterable[HostDependency]) -> DependencyGraph:
    """Flatten a host dependency tree into a DependencyGraph.

    Every child is promoted to the top level right after its parent until no
    node has unpromoted children. Duplicates are removed by name, keeping the
    first occurrence. Each name is expanded at most once, so shared or cyclic
    host structures terminate. Children that never show up as nodes stay in
    the child lists as dangling references.

    Args:
        roots: Top-level host dependencies

    Returns:
        DependencyGraph in promotion order
    """
    pending = _unique_by_name(roots)
    expanded: set[str] = set()

    while any(dep.children and dep.name not in expanded for dep in pending):
        promoted: list[HostDependency] = []
        for dep in pending:
            promoted.append(dep)
            if dep.name not in expanded:
                expanded.add(dep.name)
                promoted.extend(dep.children)
        pending = _unique_by_name(promoted)

    logger.debug("Flattened dependency graph: %d nodes", len(pending))
    return DependencyGraph(DependencyNode.from_host(dep) for dep in pending)


# ═══════════════════════════════════════════════════════════════════════════════
# Version Deltas
# ═══════════════════════════════════════════════════════════════════════════════


def same_version(old: str, new: str) -> bool:
    """Compare two version strings, PEP 440 aware ("1.0" == "1.0.0")."""
    try:
        return Version(old) == Version(new)
    except InvalidVersion:
        return old == new


def compute_version_deltas(
    before: DependencyGraph,
    after: DependencyGraph,
) -> list[VersionDelta]:
    """Find resolved packages whose version changed between two snapshots.

    Packages that were missing or unresolved before count as new. Packages
    that are unresolved after the update, or whose version did not change,
    are dropped.

    Returns:
        Deltas in the order of the after snapshot
    """
    deltas: list[VersionDelta] = []

    for node in after:
        if node.version is None:
            continue
        old = before.get(node.name)
        old_version = old.version if old is not None else None

        if old_version is not None and same_version(old_version, node.version):
            continue

        deltas.append(VersionDelta(node.name, old_version, node.version))

    return deltas
