"""
upgrade - Dependency upgrades with hooks and changelog digests.

Pieces:
- graph / ordering: what changed, leaf-first
- changelog / digest / summary: upstream notes into deps.CHANGELOG.md
- resolver / hooks: uv does the update, packages migrate themselves
- orchestrator: the state machine tying it together, with recovery
"""

from .changelog import ChangelogRecord, capture_before, fill_after, read_changelog
from .digest import DigestBlock, build_digest, combine_digests, inserted_lines
from .errors import (
    HookError,
    ResolutionAborted,
    ResolutionError,
    UpgradeError,
    UsageError,
)
from .graph import (
    DependencyGraph,
    DependencyNode,
    HostDependency,
    SourceKind,
    VersionDelta,
    compute_version_deltas,
    flatten_graph,
)
from .hooks import HOOK_GROUP, HookRegistry
from .lockfile import LOCK_FILENAME, load_host_graph, read_historical_lock
from .manifest import Declaration, read_declarations
from .orchestrator import (
    CORE_PACKAGES,
    Completed,
    Halted,
    UpgradeOptions,
    UpgradeOrchestrator,
    UpgradeOutcome,
    UpgradeState,
)
from .ordering import order_deltas, order_nodes
from .packages import EnvironmentMismatch, PackageSpec, parse_package_args, validate_packages
from .recovery import RecoveryManager, RecoverySnapshot
from .resolver import ResolveRequest, Resolver, UvResolver
from .summary import SUMMARY_FILENAME, SummaryResult, update_summary_file

__all__ = [
    "CORE_PACKAGES",
    "HOOK_GROUP",
    "LOCK_FILENAME",
    "SUMMARY_FILENAME",
    "ChangelogRecord",
    "Completed",
    "Declaration",
    "DependencyGraph",
    "DependencyNode",
    "DigestBlock",
    "EnvironmentMismatch",
    "Halted",
    "HookError",
    "HookRegistry",
    "HostDependency",
    "PackageSpec",
    "RecoveryManager",
    "RecoverySnapshot",
    "ResolutionAborted",
    "ResolutionError",
    "ResolveRequest",
    "Resolver",
    "SourceKind",
    "SummaryResult",
    "UpgradeError",
    "UpgradeOptions",
    "UpgradeOrchestrator",
    "UpgradeOutcome",
    "UpgradeState",
    "UsageError",
    "UvResolver",
    "VersionDelta",
    "build_digest",
    "capture_before",
    "combine_digests",
    "compute_version_deltas",
    "fill_after",
    "flatten_graph",
    "inserted_lines",
    "load_host_graph",
    "order_deltas",
    "order_nodes",
    "parse_package_args",
    "read_changelog",
    "read_declarations",
    "read_historical_lock",
    "update_summary_file",
    "validate_packages",
]
