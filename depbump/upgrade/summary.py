"""
summary.py - The persistent dependency changelog document.

New runs are inserted directly below a marker line, so the newest section
always comes first. Anything above the marker belongs to the user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path

logger = logging.getLogger(__name__)

SUMMARY_FILENAME = "deps.CHANGELOG.md"
MARKER = "<!-- changelog -->"

DEFAULT_HEADER = f"""# Dependencies Change Log

Auto-updated by `depbump`. 💪

Feel free to edit this file by hand. Updates will be inserted below the following marker:

{MARKER}
"""

MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


@dataclass
class SummaryResult:
    """Outcome of a summary write. Failures are reported, never raised."""

    path: Path
    written: bool
    created: bool = False
    error: str | None = None


def underlined_heading(text: str, level: int) -> str:
    """Setext-style heading: "=" underline for level 1, "-" for level 2."""
    if level == 1:
        symbol = "="
    elif level == 2:
        symbol = "-"
    else:
        raise ValueError(f"Unsupported heading level: {level}")
    return f"{text}\n{symbol * len(text)}"


def date_heading(day: date) -> str:
    """Section heading for a run, e.g. "_19. October 2026_" underlined."""
    local_date = f"{day.day}. {MONTHS[day.month - 1]} {day.year}"
    return underlined_heading(f"_{local_date}_", 2) + "\n\n"


def render_summary(existing: str | None, summary_text: str, day: date) -> str | None:
    """Return the new document content.

    Args:
        existing: Current file content, or None if the file does not exist
        summary_text: Combined digest text for this run
        day: Date for the section heading

    Returns:
        Updated content, or None if an existing file has no marker
    """
    heading = date_heading(day)

    if existing is None:
        return DEFAULT_HEADER + "\n" + heading + summary_text + "\n"

    if MARKER not in existing:
        return None

    return existing.replace(MARKER, MARKER + "\n\n" + heading + summary_text + "\n\n", 1)


def update_summary_file(path: Path, summary_text: str, day: date | None = None) -> SummaryResult | None:
    """Insert a dated section with summary_text below the marker in path.

    Creates the file with a default header if it does not exist. Empty text
    is a no-op.

    Returns:
        SummaryResult, or None when there was nothing to write
    """
    if not summary_text:
        return None

    day = day or date.today()

    try:
        existing: str | None = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        existing = None
    except OSError as e:
        logger.warning("Failed to read %s: %s", path, e)
        return SummaryResult(path=path, written=False, error=str(e))

    updated = render_summary(existing, summary_text, day)
    if updated is None:
        logger.warning("Marker %s not found in %s, leaving it untouched", MARKER, path)
        return SummaryResult(path=path, written=False, error=f"marker {MARKER} not found")

    try:
        path.write_text(updated, encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to write %s: %s", path, e)
        return SummaryResult(path=path, written=False, error=str(e))

    return SummaryResult(path=path, written=True, created=existing is None)
