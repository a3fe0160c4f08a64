"""
changelog.py - Reading bundled changelogs before and after an update.

Most packages ship no changelog at their installed location, so absence is
an ordinary result here and never an error.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .graph import DependencyGraph, VersionDelta

logger = logging.getLogger(__name__)

# Tried in order inside the package's installed directory
CHANGELOG_NAMES = ("CHANGELOG.md", "CHANGELOG")


@dataclass
class ChangelogRecord:
    """Changelog text of one top-level dependency around an update."""

    name: str
    before: str | None = None
    after: str | None = None


def read_changelog(location: Path | None) -> str | None:
    """Read the changelog bundled at a package location.

    Args:
        location: Installed directory of the package (None if unknown)

    Returns:
        Changelog text, or None if no candidate file could be read
    """
    if location is None:
        return None

    for filename in CHANGELOG_NAMES:
        try:
            return (location / filename).read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue

    logger.debug("No changelog found in %s", location)
    return None


def capture_before(graph: DependencyGraph) -> list[ChangelogRecord]:
    """Create a record with the current changelog for every top-level node."""
    return [
        ChangelogRecord(name=node.name, before=read_changelog(node.location))
        for node in graph.top_level()
    ]


def fill_after(
    records: Iterable[ChangelogRecord],
    deltas: Iterable[VersionDelta],
    graph: DependencyGraph,
) -> list[ChangelogRecord]:
    """Read the after-update changelog for records whose package changed.

    The after text is read from the package's location in the after graph,
    since the installed directory can move with the version.

    Returns:
        Only the records that belong to a changed package
    """
    changed = {delta.name for delta in deltas}
    filled: list[ChangelogRecord] = []

    for record in records:
        if record.name not in changed:
            continue
        node = graph.get(record.name)
        record.after = read_changelog(node.location if node else None)
        filled.append(record)

    return filled
