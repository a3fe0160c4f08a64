"""
UpgradePrinter - depbump-specific terminal output.

Extends the generic Printer with upgrade reporting methods.
"""

from __future__ import annotations

from pathlib import Path

from depbump.printer import Printer
from depbump.shared import format_version_change, relative_path
from depbump.upgrade import EnvironmentMismatch, SummaryResult, UpgradeState, VersionDelta

# Orchestrator states worth announcing; resolver steps announce themselves
STATE_ACTIONS = {
    UpgradeState.SNAPSHOT_BEFORE: "Reading dependency graph",
    UpgradeState.DISPATCHING_HOOKS: "Running upgrade hooks",
    UpgradeState.SUMMARIZING: "Writing changelog summary",
    UpgradeState.ERROR_RECOVERY: "Upgrade failed",
}


class UpgradePrinter(Printer):
    """Printer subclass with upgrade reporting."""

    def upgrade_state(self, state: UpgradeState) -> None:
        label = STATE_ACTIONS.get(state)
        if label:
            self.action(label)

    def version_change(self, delta: VersionDelta) -> None:
        """Print one package move: name old → new."""
        self.bullet(f"{delta.name} {format_version_change(delta.old_version, delta.new_version)}")

    def deltas(self, deltas: list[VersionDelta]) -> None:
        if not deltas:
            self.success("Dependencies already up to date")
            return
        self.section("Updated packages", count=len(deltas))
        for delta in deltas:
            self.version_change(delta)

    def env_mismatch(self, mismatch: EnvironmentMismatch) -> None:
        """Warn with the first paragraph; the rerun hint goes underneath."""
        first, _, rest = mismatch.message.partition("\n\n")
        self.warn(first)
        if rest:
            self.detail(rest)

    def skipped_env(self, skipped: list[VersionDelta], env: str) -> None:
        """Packages whose hooks were not run in this environment."""
        if not skipped:
            return
        self.section(f"Not installed in `{env}`, hooks skipped", count=len(skipped))
        for delta in skipped:
            self.skipped(delta.name)

    def missing_hooks(self, names: list[str]) -> None:
        if not names:
            return
        self.dim(f"No upgrade hooks ({len(names)}): {', '.join(names)}")

    def self_upgrade_halt(self, message: str) -> None:
        """Print the halt notice; indented lines are commands to run next."""
        lines = message.rstrip().splitlines()
        print()
        self.warn(lines[0])
        for line in lines[1:]:
            if line.startswith("    "):
                self.suggestion(line.strip())
            else:
                self.line(line)

    def summary_written(self, result: SummaryResult | None, project_root: Path) -> None:
        if result is None:
            self.info("No changelog additions to record")
            return
        if result.error:
            self.warn(f"Could not update {relative_path(result.path, project_root)}: {result.error}")
            return
        if not result.written:
            self.warn(f"{relative_path(result.path, project_root)} has no changelog marker; left unchanged")
            return
        verb = "Created" if result.created else "Updated"
        self.success(f"{verb} {relative_path(result.path, project_root)}")
