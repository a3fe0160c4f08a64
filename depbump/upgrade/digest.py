"""
digest.py - Changelog diffing and digest formatting.

Turns two changelog snapshots into the text that was added between them,
nested two heading levels deeper and with blank runs capped, ready to be
written to the summary document.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal

from .changelog import ChangelogRecord
from .graph import VersionDelta

DiffOp = Literal["eq", "del", "ins"]

HEADING_SHIFT = 2
MAX_HEADING_LEVEL = 6
MAX_BLANK_LINES = 2

_HEADING_RE = re.compile(r"^(#+) ")

# ═══════════════════════════════════════════════════════════════════════════════
# Line Diff
# ═══════════════════════════════════════════════════════════════════════════════


def _common_ends(a: Sequence[str], b: Sequence[str]) -> tuple[int, int]:
    """Number of shared leading and trailing lines; the two never overlap."""
    limit = min(len(a), len(b))
    prefix = 0
    while prefix < limit and a[prefix] == b[prefix]:
        prefix += 1

    suffix = 0
    while suffix < limit - prefix and a[-1 - suffix] == b[-1 - suffix]:
        suffix += 1
    return prefix, suffix


def _middle_point(a: Sequence[str], b: Sequence[str]) -> tuple[int, int]:
    """A point (x, y) on a shortest edit path between a and b.

    Searches forward from the start and backward from the end at the same
    time, keeping only the furthest x reached on each diagonal, and stops
    where the two fronts overlap. Both inputs must be non-empty with
    different first and last lines.
    """
    n, m = len(a), len(b)
    max_d = (n + m + 1) // 2
    offset = max_d
    size = 2 * max_d + 2
    forward = [-1] * size
    backward = [-1] * size
    forward[offset + 1] = 0
    backward[offset + 1] = 0
    delta = n - m
    # With an odd delta the fronts can only meet on a forward step
    meet_forward = delta % 2 != 0
    # Diagonals that already ran off the grid are skipped
    f_start = f_end = b_start = b_end = 0

    for d in range(max_d):
        for k in range(-d + f_start, d + 1 - f_end, 2):
            i = offset + k
            if k == -d or (k != d and forward[i - 1] < forward[i + 1]):
                x = forward[i + 1]
            else:
                x = forward[i - 1] + 1
            y = x - k
            while x < n and y < m and a[x] == b[y]:
                x += 1
                y += 1
            forward[i] = x
            if x > n:
                f_end += 2
            elif y > m:
                f_start += 2
            elif meet_forward:
                j = offset + delta - k
                if 0 <= j < size and backward[j] != -1 and x >= n - backward[j]:
                    return x, y

        for k in range(-d + b_start, d + 1 - b_end, 2):
            j = offset + k
            if k == -d or (k != d and backward[j - 1] < backward[j + 1]):
                x = backward[j + 1]
            else:
                x = backward[j - 1] + 1
            y = x - k
            while x < n and y < m and a[-1 - x] == b[-1 - y]:
                x += 1
                y += 1
            backward[j] = x
            if x > n:
                b_end += 2
            elif y > m:
                b_start += 2
            elif not meet_forward:
                i = offset + delta - k
                if 0 <= i < size and forward[i] != -1 and forward[i] >= n - x:
                    return forward[i], forward[i] - (delta - k)

    # The fronts meet within max_d rounds; replace everything otherwise
    return n, 0


def _edits(a: Sequence[str], b: Sequence[str]) -> list[tuple[DiffOp, str]]:
    """Minimal edit script between a and b, one (op, line) per line.

    Linear-space Myers: shared ends are matched directly, a one-sided
    remainder is a plain insertion or deletion, and anything else is split
    at a point on a shortest path and each half solved on its own.
    """
    prefix, suffix = _common_ends(a, b)
    a_mid = a[prefix:len(a) - suffix]
    b_mid = b[prefix:len(b) - suffix]

    edits: list[tuple[DiffOp, str]] = [("eq", line) for line in a[:prefix]]
    if not a_mid:
        edits.extend(("ins", line) for line in b_mid)
    elif not b_mid:
        edits.extend(("del", line) for line in a_mid)
    else:
        x, y = _middle_point(a_mid, b_mid)
        edits.extend(_edits(a_mid[:x], b_mid[:y]))
        edits.extend(_edits(a_mid[x:], b_mid[y:]))
    edits.extend(("eq", line) for line in a[len(a) - suffix:])
    return edits


def myers_diff(a: Sequence[str], b: Sequence[str]) -> list[tuple[DiffOp, list[str]]]:
    """Line-level diff of two sequences using Myers' algorithm.

    Memory stays linear in the input size, and changelogs that only grow at
    the top never reach the search at all.

    Args:
        a: Lines before
        b: Lines after

    Returns:
        Runs of (op, lines) where op is "eq", "del" or "ins"
    """
    runs: list[tuple[DiffOp, list[str]]] = []
    for op, line in _edits(a, b):
        if runs and runs[-1][0] == op:
            runs[-1][1].append(line)
        else:
            runs.append((op, [line]))
    return runs


def inserted_lines(before: str | None, after: str | None) -> list[str]:
    """Lines present in after but not in before, in order.

    Missing texts count as empty.
    """
    runs = myers_diff(before.split("\n") if before else [], after.split("\n") if after else [])
    return [line for op, lines in runs if op == "ins" for line in lines]


# ═══════════════════════════════════════════════════════════════════════════════
# Normalization
# ═══════════════════════════════════════════════════════════════════════════════


def shift_headings(lines: Iterable[str], shift: int = HEADING_SHIFT) -> list[str]:
    """Push Markdown headings ("# ", "## ", ...) down by shift levels, max 6."""
    shifted: list[str] = []
    for line in lines:
        match = _HEADING_RE.match(line)
        if match:
            level = min(MAX_HEADING_LEVEL, len(match.group(1)) + shift)
            line = "#" * level + line[len(match.group(1)):]
        shifted.append(line)
    return shifted


def limit_vertical_whitespace(lines: Iterable[str], maximum: int = MAX_BLANK_LINES) -> list[str]:
    """Cap runs of blank lines at maximum. Whitespace-only lines become empty."""
    limited: list[str] = []
    blank_run = 0
    for line in lines:
        if line.strip():
            blank_run = 0
            limited.append(line)
            continue
        blank_run += 1
        if blank_run <= maximum:
            limited.append("")
    return limited


# ═══════════════════════════════════════════════════════════════════════════════
# Digest Blocks
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DigestBlock:
    """What is new in one package's changelog for one upgrade."""

    name: str
    old_version: str | None
    new_version: str
    body: str

    @property
    def header(self) -> str:
        return f"### `{self.name}` ({self.old_version or 'new'} ➞ {self.new_version})"

    def render(self) -> str:
        return f"{self.header}\n\n{self.body}".rstrip()


def build_digest(record: ChangelogRecord, delta: VersionDelta) -> DigestBlock:
    """Build the digest block for a changed package.

    The block is produced even if nothing was inserted (header only).
    """
    lines = inserted_lines(record.before, record.after)
    lines = limit_vertical_whitespace(shift_headings(lines))
    return DigestBlock(
        name=delta.name,
        old_version=delta.old_version,
        new_version=delta.new_version,
        body="\n".join(lines),
    )


def combine_digests(blocks: Iterable[DigestBlock]) -> str:
    """Join rendered blocks, separated by two blank lines."""
    return "\n\n\n".join(block.render() for block in blocks).rstrip()
