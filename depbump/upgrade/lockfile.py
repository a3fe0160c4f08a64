"""
lockfile.py - uv.lock parsing into host dependency trees.

Builds the nested HostDependency structure the snapshot reader consumes,
starting from the project's direct dependencies, and reads a historical
uv.lock out of git for --git-ci runs.
"""

from __future__ import annotations

import logging
import tomllib
from importlib.metadata import Distribution
from pathlib import Path
from typing import Any

from packaging.utils import canonicalize_name
from packaging.version import InvalidVersion, Version

from depbump.shared import run_command

from .changelog import CHANGELOG_NAMES
from .errors import UpgradeError
from .graph import DependencyGraph, DependencyNode, HostDependency, SourceKind
from .manifest import Declaration, source_kind

logger = logging.getLogger(__name__)

LOCK_FILENAME = "uv.lock"

# ═══════════════════════════════════════════════════════════════════════════════
# Parsing
# ═══════════════════════════════════════════════════════════════════════════════


def parse_lock(text: str) -> list[dict[str, Any]]:
    """Return the [[package]] tables of a uv.lock document."""
    data = tomllib.loads(text)
    packages = data.get("package", [])
    return [pkg for pkg in packages if isinstance(pkg, dict) and pkg.get("name")]


def _is_project_source(source: dict[str, Any]) -> bool:
    return source.get("editable") == "." or source.get("virtual") == "."


def find_root_package(
    packages: list[dict[str, Any]],
    project_name: str | None = None,
) -> dict[str, Any] | None:
    """Find the lock entry of the project itself."""
    wanted = canonicalize_name(project_name) if project_name else None
    for pkg in packages:
        if _is_project_source(pkg.get("source", {})):
            return pkg
        if wanted and canonicalize_name(pkg["name"]) == wanted:
            return pkg
    return None


def _dependency_names(entries: Any) -> list[str]:
    names: list[str] = []
    for entry in entries or []:
        if isinstance(entry, dict) and entry.get("name"):
            name = canonicalize_name(entry["name"])
            if name not in names:
                names.append(name)
    return names


def _root_dependency_names(root: dict[str, Any]) -> list[str]:
    """Direct dependencies of the project, including extras and groups."""
    names = _dependency_names(root.get("dependencies"))
    for table_name in ("optional-dependencies", "dev-dependencies"):
        for entries in root.get(table_name, {}).values():
            for name in _dependency_names(entries):
                if name not in names:
                    names.append(name)
    return names


# ═══════════════════════════════════════════════════════════════════════════════
# Installed Locations
# ═══════════════════════════════════════════════════════════════════════════════


def find_site_packages(venv: Path) -> Path | None:
    """Locate site-packages inside a virtualenv (POSIX or Windows layout)."""
    candidates = sorted(venv.glob("lib/python*/site-packages"))
    candidates.append(venv / "Lib" / "site-packages")
    for candidate in candidates:
        if candidate.is_dir():
            return candidate
    return None


def _installed_dirs(dist_info: Path) -> list[Path]:
    """Top-level directories a distribution installed next to its dist-info.

    Names come from top_level.txt when the wheel has one, then from the
    first path component of every RECORD entry.
    """
    dist = Distribution.at(dist_info)
    names = (dist.read_text("top_level.txt") or "").split()
    names.extend(file.parts[0] for file in dist.files or () if len(file.parts) > 1)

    dirs: list[Path] = []
    for name in dict.fromkeys(names):
        if name in ("..", "__pycache__") or name.endswith((".dist-info", ".data")):
            continue
        path = dist_info.parent / name
        if path.is_dir():
            dirs.append(path)
    return dirs


def _changelog_dir(dist_info: Path) -> Path:
    # First candidate that bundles a changelog, else the import package itself
    candidates = [*_installed_dirs(dist_info), dist_info]
    for candidate in candidates:
        if any((candidate / filename).is_file() for filename in CHANGELOG_NAMES):
            return candidate
    return candidates[0]


def installed_locations(site_packages: Path | None) -> dict[str, Path]:
    """Map normalized distribution names to where their changelog would live.

    That is the installed package directory (or the .dist-info directory
    when the changelog was bundled there instead).
    """
    if site_packages is None or not site_packages.is_dir():
        return {}

    locations: dict[str, Path] = {}
    for dist_info in sorted(site_packages.glob("*.dist-info")):
        dist_name = canonicalize_name(dist_info.name[: -len(".dist-info")].rsplit("-", 1)[0])
        if dist_name not in locations:
            locations[dist_name] = _changelog_dir(dist_info)
    return locations


def _location_for(
    source: dict[str, Any],
    kind: SourceKind,
    name: str,
    project_dir: Path,
    installed: dict[str, Path],
) -> Path | None:
    if kind in (SourceKind.PATH, SourceKind.EDITABLE):
        local = source.get("editable") or source.get("path") or source.get("directory")
        if isinstance(local, str):
            return (project_dir / local).resolve()
    return installed.get(name)


# ═══════════════════════════════════════════════════════════════════════════════
# Host Graph
# ═══════════════════════════════════════════════════════════════════════════════


def build_host_graph(
    packages: list[dict[str, Any]],
    declarations: dict[str, Declaration],
    project_dir: Path,
    site_packages: Path | None = None,
    project_name: str | None = None,
) -> list[HostDependency]:
    """Turn uv.lock package tables into nested HostDependency trees.

    One HostDependency exists per package name, shared by every parent that
    depends on it. The returned roots are the project's direct dependencies,
    marked top_level; without a project entry every package is a root.

    Args:
        packages: [[package]] tables from uv.lock
        declarations: Manifest declarations (requirements, groups, sources)
        project_dir: Directory holding pyproject.toml
        site_packages: Virtualenv site-packages for installed locations
        project_name: Name of the project, used if no editable root is found

    Returns:
        Top-level HostDependency objects
    """
    root = find_root_package(packages, project_name)
    root_name = canonicalize_name(root["name"]) if root else None
    installed = installed_locations(site_packages)

    by_name: dict[str, HostDependency] = {}
    child_names: dict[str, list[str]] = {}

    for pkg in packages:
        name = canonicalize_name(pkg["name"])
        if name == root_name or name in by_name:
            continue
        source = pkg.get("source", {})
        kind = source_kind(source)
        decl = declarations.get(name)
        by_name[name] = HostDependency(
            name=name,
            version=pkg.get("version"),
            requirement=decl.requirement if decl else None,
            source=decl.source if decl and decl.source is not SourceKind.REGISTRY else kind,
            allowed_envs=decl.allowed_envs if decl else None,
            location=_location_for(source, kind, name, project_dir, installed),
        )
        child_names[name] = _dependency_names(pkg.get("dependencies"))

    for name, dep in by_name.items():
        dep.children = [by_name[child] for child in child_names[name] if child in by_name]

    if root is None:
        logger.debug("No project entry in uv.lock, treating all packages as roots")
        return list(by_name.values())

    roots: list[HostDependency] = []
    for name in _root_dependency_names(root):
        dep = by_name.get(name)
        if dep is None:
            # Declared but not locked: keep it visible as unresolved
            dep = HostDependency(name=name, version=None)
        dep.top_level = True
        roots.append(dep)
    return roots


def load_host_graph(
    lock_path: Path,
    manifest_declarations: dict[str, Declaration],
    venv: Path | None = None,
    project_name: str | None = None,
) -> list[HostDependency]:
    """Read uv.lock from disk and build its host graph."""
    if not lock_path.exists():
        return []
    packages = parse_lock(lock_path.read_text(encoding="utf-8"))
    site_packages = find_site_packages(venv) if venv else None
    return build_host_graph(
        packages,
        manifest_declarations,
        lock_path.parent,
        site_packages=site_packages,
        project_name=project_name,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Historical Lock (git)
# ═══════════════════════════════════════════════════════════════════════════════


def historical_graph(text: str) -> DependencyGraph:
    """Flat graph of resolved versions from an old uv.lock.

    Entries whose version is not valid PEP 440 are skipped. Nodes carry no
    children and are not marked top-level.
    """
    nodes: list[DependencyNode] = []
    for pkg in parse_lock(text):
        version = pkg.get("version")
        if not isinstance(version, str) or _is_project_source(pkg.get("source", {})):
            continue
        try:
            Version(version)
        except InvalidVersion:
            continue
        nodes.append(DependencyNode(name=canonicalize_name(pkg["name"]), version=version))
    return DependencyGraph(nodes)


def read_historical_lock(project_dir: Path, revision: str = "HEAD~1") -> DependencyGraph:
    """Load uv.lock as it was at a previous git revision.

    Raises:
        UpgradeError: If git cannot show the file or it does not parse
    """
    success, output = run_command(
        ["git", "show", f"{revision}:./{LOCK_FILENAME}"],
        cwd=project_dir,
    )
    if not success:
        raise UpgradeError(f"Could not read {LOCK_FILENAME} at {revision}: {output or 'git failed'}")

    try:
        return historical_graph(output)
    except tomllib.TOMLDecodeError as e:
        raise UpgradeError(f"Could not parse {LOCK_FILENAME} at {revision}: {e}") from e
