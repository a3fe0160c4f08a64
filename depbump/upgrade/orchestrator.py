"""
orchestrator.py - The upgrade state machine.

    idle -> snapshot_before -> resolving -> snapshot_after -> diffing
         -> ordering -> dispatching_hooks -> summarizing -> done

Any failure after snapshot_before goes through error_recovery, which offers
to restore pyproject.toml and uv.lock and then re-raises the failure.
Upgrading depbump's own dependencies stops before the hooks run and keeps
the new lock (halted), because the running process cannot dispatch hooks
with code that was just replaced.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path

from .changelog import ChangelogRecord, capture_before, fill_after
from .digest import build_digest, combine_digests
from .graph import DependencyGraph, VersionDelta, compute_version_deltas
from .hooks import HookRegistry
from .ordering import order_deltas
from .recovery import RecoveryManager
from .resolver import ResolveRequest, Resolver
from .summary import SummaryResult, update_summary_file

logger = logging.getLogger(__name__)

# depbump and the libraries it runs on
CORE_PACKAGES = frozenset({"depbump", "typer", "click", "rich", "tenacity", "packaging", "wcwidth"})

SELF_UPGRADE_MESSAGE = """Cannot upgrade depbump or its dependencies with `depbump upgrade` in one command.

The dependency changes have been saved.

To complete the upgrade, run the following command:

    depbump apply-upgrades {upgrades}
"""


class UpgradeState(str, Enum):
    IDLE = "idle"
    SNAPSHOT_BEFORE = "snapshot_before"
    RESOLVING = "resolving"
    SNAPSHOT_AFTER = "snapshot_after"
    DIFFING = "diffing"
    ORDERING = "ordering"
    DISPATCHING_HOOKS = "dispatching_hooks"
    SUMMARIZING = "summarizing"
    DONE = "done"
    HALTED = "halted"
    ERROR_RECOVERY = "error_recovery"


@dataclass
class UpgradeOptions:
    """Run-wide settings for one orchestration."""

    env: str = "dev"
    yes: bool = False
    historical: bool = False
    hook_flags: list[str] = field(default_factory=list)
    summary_date: date | None = None


@dataclass
class Completed:
    """The upgrade ran to the end."""

    deltas: list[VersionDelta]
    missing_hooks: list[str] = field(default_factory=list)
    skipped: list[VersionDelta] = field(default_factory=list)
    summary: SummaryResult | None = None


@dataclass
class Halted:
    """The upgrade stopped on purpose; lock changes are kept."""

    message: str
    deltas: list[VersionDelta]
    summary: SummaryResult | None = None


UpgradeOutcome = Completed | Halted


def self_upgrades(deltas: list[VersionDelta]) -> list[VersionDelta]:
    """Deltas that touch depbump's own machinery."""
    return [delta for delta in deltas if delta.name in CORE_PACKAGES]


def self_upgrade_message(deltas: list[VersionDelta]) -> str:
    return SELF_UPGRADE_MESSAGE.format(upgrades=" ".join(str(delta) for delta in deltas))


class UpgradeOrchestrator:
    """Runs one upgrade from snapshot to summary.

    Collaborators are injected: read_graph returns the live dependency graph,
    read_historical the graph from a previous commit (historical mode only),
    the resolver updates the lock, and hooks migrate changed packages.
    """

    def __init__(
        self,
        read_graph: Callable[[], DependencyGraph],
        resolver: Resolver,
        hooks: HookRegistry,
        recovery: RecoveryManager,
        protected_files: list[Path],
        summary_path: Path,
        options: UpgradeOptions | None = None,
        read_historical: Callable[[], DependencyGraph] | None = None,
        on_state: Callable[[UpgradeState], None] | None = None,
    ):
        self.read_graph = read_graph
        self.resolver = resolver
        self.hooks = hooks
        self.recovery = recovery
        self.protected_files = protected_files
        self.summary_path = summary_path
        self.options = options or UpgradeOptions()
        self.read_historical = read_historical
        self.on_state = on_state
        self.state = UpgradeState.IDLE

    def _enter(self, state: UpgradeState) -> None:
        logger.debug("Upgrade state: %s -> %s", self.state.value, state.value)
        self.state = state
        if self.on_state:
            self.on_state(state)

    def run(self, request: ResolveRequest) -> UpgradeOutcome:
        """Run the upgrade.

        Returns:
            Completed, or Halted for a self-upgrade

        Raises:
            Whatever failed after the first snapshot, after recovery was offered
        """
        historical = self.options.historical

        self._enter(UpgradeState.SNAPSHOT_BEFORE)
        if historical:
            if self.read_historical is None:
                raise ValueError("historical mode needs a read_historical callable")
            before = self.read_historical()
        else:
            before = self.read_graph()
        records = capture_before(before)
        if not historical:
            self.recovery.capture(self.protected_files)

        try:
            outcome = self._upgrade(request, before.resolved(), records)
        except (Exception, KeyboardInterrupt) as e:
            self._enter(UpgradeState.ERROR_RECOVERY)
            if not historical:
                reason = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
                try:
                    restored = self.recovery.recover(reason)
                except Exception:
                    logger.exception("Restoring project files failed")
                else:
                    logger.debug("Recovery after failure: restored=%s", restored)
            raise
        finally:
            self.recovery.discard()

        return outcome

    def _upgrade(
        self,
        request: ResolveRequest,
        before: DependencyGraph,
        records: list[ChangelogRecord],
    ) -> UpgradeOutcome:
        historical = self.options.historical

        if not historical:
            self._enter(UpgradeState.RESOLVING)
            self.resolver.resolve(request)

        self._enter(UpgradeState.SNAPSHOT_AFTER)
        after = self.read_graph().resolved()

        self._enter(UpgradeState.DIFFING)
        deltas = compute_version_deltas(before, after)

        self._enter(UpgradeState.ORDERING)
        deltas = order_deltas(deltas, after)

        if not historical and self_upgrades(deltas):
            summary = self._summarize(records, deltas, after)
            self._enter(UpgradeState.HALTED)
            return Halted(message=self_upgrade_message(deltas), deltas=deltas, summary=summary)

        self._enter(UpgradeState.DISPATCHING_HOOKS)
        actionable: list[VersionDelta] = []
        skipped: list[VersionDelta] = []
        for delta in deltas:
            node = after.get(delta.name)
            if node is not None and not node.allowed_in(self.options.env):
                skipped.append(delta)
            else:
                actionable.append(delta)
        missing = self.hooks.dispatch(actionable, self.options.hook_flags)

        self._enter(UpgradeState.SUMMARIZING)
        summary = self._summarize(records, deltas, after)

        self._enter(UpgradeState.DONE)
        return Completed(deltas=deltas, missing_hooks=missing, skipped=skipped, summary=summary)

    def _summarize(
        self,
        records: list[ChangelogRecord],
        deltas: list[VersionDelta],
        after: DependencyGraph,
    ) -> SummaryResult | None:
        by_name = {record.name: record for record in fill_after(records, deltas, after)}
        blocks = [build_digest(by_name[delta.name], delta) for delta in deltas if delta.name in by_name]
        return update_summary_file(self.summary_path, combine_digests(blocks), self.options.summary_date)
