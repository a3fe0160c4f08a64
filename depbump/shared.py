"""
shared.py - Common utilities for depbump

Subprocess helpers and small formatting helpers used by the CLI layer and
the upgrade engine's host collaborators.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Formatting Helpers
# ═══════════════════════════════════════════════════════════════════════════════


def relative_path(abs_path: str | Path, project_root: Path) -> str:
    """Show a path relative to the project root when it lives inside it.

    Returns:
        e.g. "deps.CHANGELOG.md", or the path unchanged if it is elsewhere
    """
    try:
        return str(Path(abs_path).relative_to(project_root))
    except ValueError:
        return str(abs_path)


def format_version_change(old: str | None, new: str) -> str:
    """Format a version move for display, e.g. "1.0.0 → 1.1.0"."""
    return f"{old or 'new'} → {new}"


def output_tail(output: str, max_lines: int = 20) -> str:
    """Last few lines of command output, for error messages."""
    lines = output.strip().splitlines()
    return "\n".join(lines[-max_lines:])


# ═══════════════════════════════════════════════════════════════════════════════
# Subprocess Helpers
# ═══════════════════════════════════════════════════════════════════════════════


def run_command(
    cmd: list[str],
    cwd: Path | None = None,
    timeout: int = 30,
) -> tuple[bool, str]:
    """Run a short command to completion and capture what it printed.

    Args:
        cmd: Command and arguments
        cwd: Working directory (optional)
        timeout: Seconds before giving up (default 30)

    Returns:
        (True, stdout) on exit status 0. Otherwise (False, message), where the
        message is stderr (git and uv report errors there), stdout, or the
        reason the command could not run at all.
    """
    logger.debug("Running %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, check=False, timeout=timeout)
    except subprocess.TimeoutExpired:
        return False, f"Timeout after {timeout}s"
    except OSError as e:
        return False, str(e)

    if result.returncode == 0:
        return True, result.stdout.rstrip()
    return False, (result.stderr or result.stdout).rstrip()


def run_streaming_command(
    cmd: list[str],
    cwd: Path | None = None,
    printer: Any = None,
    indent: str = "  ",
    skip_blank_lines: bool = False,
) -> tuple[int, str]:
    """Run a long command, echoing its output line by line as it arrives.

    uv reports progress on stderr, so both streams are merged. Lines go
    through printer.stream_line when a printer is given, otherwise they are
    printed at the indent. Ctrl-C terminates the child and propagates.

    Returns:
        (returncode, non-blank output lines joined by newlines)
    """
    logger.debug("Streaming %s", " ".join(cmd))
    collected: list[str] = []

    with subprocess.Popen(
        cmd,
        cwd=cwd,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        bufsize=1,
    ) as process:
        assert process.stdout is not None
        try:
            for raw_line in process.stdout:
                line = raw_line.rstrip()
                if line:
                    collected.append(line)
                elif skip_blank_lines:
                    continue
                if printer is not None:
                    printer.stream_line(line, indent=indent)
                else:
                    print(f"{indent}{line}" if line else "")
        except KeyboardInterrupt:
            process.terminate()
            raise

    return process.returncode, "\n".join(collected)
