"""
commands.py - CLI command implementations for depbump.

Each function handles one subcommand and returns an exit code:
0 on success, 1 on errors, 2 when an upgrade halted on purpose.
"""

from __future__ import annotations

import logging
import tomllib
from typing import Any

from depbump.config import ProjectFiles, Settings
from depbump.upgrade import (
    HOOK_GROUP,
    Completed,
    DependencyGraph,
    HookError,
    HookRegistry,
    PackageSpec,
    RecoveryManager,
    ResolutionAborted,
    ResolveRequest,
    Resolver,
    UpgradeError,
    UpgradeOptions,
    UpgradeOrchestrator,
    UsageError,
    UvResolver,
    VersionDelta,
    flatten_graph,
    load_host_graph,
    parse_package_args,
    read_declarations,
    read_historical_lock,
    validate_packages,
)
from depbump.upgrade.manifest import Declaration
from depbump.upgrade_printer import UpgradePrinter as Printer

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_HALTED = 2


# ═══════════════════════════════════════════════════════════════════════════════
# upgrade
# ═══════════════════════════════════════════════════════════════════════════════


def check_upgrade_usage(args: Any, specs: list[PackageSpec]) -> None:
    """Reject option combinations that make no sense.

    Raises:
        UsageError: With the message to show
    """
    if not specs and not args.all:
        raise UsageError("Must specify at least one package to upgrade or use --all to upgrade all packages.")
    if specs and args.all:
        raise UsageError("Cannot specify both --all and package names.")
    if specs and args.only:
        raise UsageError("Cannot specify both --only and package names.")
    if specs and args.target:
        raise UsageError("Cannot specify both --target and package names.")


def hook_flags_for(args: Any, yes: bool) -> list[str]:
    """Flags passed through to every upgrade hook."""
    flags = list(getattr(args, "hook_flag", []) or [])
    if yes and "--yes" not in flags:
        flags.append("--yes")
    return flags


def _graph_reader(files: ProjectFiles, settings: Settings) -> Any:
    """Return a callable reading the live graph from disk.

    The manifest is re-read on every call so packages added by the resolver
    are marked top-level in the after snapshot.
    """

    def read_graph() -> DependencyGraph:
        try:
            declarations = read_declarations(files.manifest)
            roots = load_host_graph(
                files.lock,
                declarations,
                venv=files.venv,
                project_name=settings.project_name,
            )
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise UpgradeError(f"Could not read the dependency graph: {e}") from e
        return flatten_graph(roots)

    return read_graph


def _read_manifest(files: ProjectFiles, printer: Printer) -> dict[str, Declaration] | None:
    if not files.manifest.exists():
        printer.error(f"No pyproject.toml in {files.project_root}")
        return None
    try:
        return read_declarations(files.manifest)
    except tomllib.TOMLDecodeError as e:
        printer.error(f"Could not parse {files.manifest.name}: {e}")
        return None


def _report_completed(outcome: Completed, printer: Printer, files: ProjectFiles, settings: Settings) -> None:
    printer.deltas(outcome.deltas)
    printer.skipped_env(outcome.skipped, settings.environment)
    printer.missing_hooks(outcome.missing_hooks)
    printer.summary_written(outcome.summary, files.project_root)


def cmd_upgrade(
    args: Any,
    printer: Printer,
    files: ProjectFiles,
    settings: Settings,
    registry: HookRegistry | None = None,
    resolver: Resolver | None = None,
) -> int:
    """Upgrade dependencies, run their hooks and record their changelogs.

    Args:
        args: Namespace from cli.make_args
        printer: Output
        files: Project paths
        settings: [tool.depbump] settings
        registry: Hook registry (default: loaded from entry points)
        resolver: Resolver (default: uv)

    Returns:
        Exit code
    """
    git_ci = bool(getattr(args, "git_ci", False))
    yes = bool(args.yes) or git_ci

    try:
        specs = parse_package_args(args.packages)
        check_upgrade_usage(args, specs)
    except UsageError as e:
        printer.error(str(e))
        return EXIT_ERROR

    declarations = _read_manifest(files, printer)
    if declarations is None:
        return EXIT_ERROR

    try:
        mismatches = validate_packages(specs, declarations, settings.environment)
    except UsageError as e:
        printer.error(str(e))
        return EXIT_ERROR

    for mismatch in mismatches:
        printer.env_mismatch(mismatch)
    skipped_specs = {mismatch.spec for mismatch in mismatches}
    specs = [spec for spec in specs if spec not in skipped_specs]
    if not specs and not args.all:
        printer.info("Nothing to upgrade in this environment")
        return EXIT_OK

    request = ResolveRequest(
        packages=specs,
        upgrade_all=bool(args.all),
        only=args.only,
        target=args.target,
        skip_archive_check=bool(args.no_archives_check),
        yes=yes,
        add_flags={
            spec.name: declarations[spec.name].uv_add_flags()
            for spec in specs
            if spec.version and spec.name in declarations
        },
    )

    if registry is None:
        registry = HookRegistry.from_entry_points(settings.hook_group)
    if resolver is None:
        resolver = UvResolver(files.project_root, printer=printer, confirm=printer.confirm, uv=settings.uv)

    orchestrator = UpgradeOrchestrator(
        read_graph=_graph_reader(files, settings),
        resolver=resolver,
        hooks=registry,
        recovery=RecoveryManager(confirm=printer.confirm, yes=yes),
        protected_files=files.protected,
        summary_path=files.summary,
        options=UpgradeOptions(
            env=settings.environment,
            yes=yes,
            historical=git_ci,
            hook_flags=hook_flags_for(args, yes),
        ),
        read_historical=lambda: read_historical_lock(files.project_root),
        on_state=printer.upgrade_state,
    )

    try:
        outcome = orchestrator.run(request)
    except ResolutionAborted as e:
        printer.error(f"Upgrade aborted: {e}")
        return EXIT_ERROR
    except UpgradeError as e:
        printer.error(str(e))
        return EXIT_ERROR
    except KeyboardInterrupt:
        printer.error("Upgrade interrupted")
        return EXIT_ERROR

    if isinstance(outcome, Completed):
        _report_completed(outcome, printer, files, settings)
        printer.complete("Upgrade complete")
        return EXIT_OK

    printer.deltas(outcome.deltas)
    printer.summary_written(outcome.summary, files.project_root)
    printer.self_upgrade_halt(outcome.message)
    return EXIT_HALTED


# ═══════════════════════════════════════════════════════════════════════════════
# apply-upgrades
# ═══════════════════════════════════════════════════════════════════════════════


def parse_upgrade_triple(raw: str) -> VersionDelta:
    """Parse "name:old:new"; an empty old version means a new package.

    Raises:
        UsageError: If the triple is malformed
    """
    parts = raw.split(":")
    if len(parts) != 3 or not parts[0] or not parts[2]:
        raise UsageError(f"Invalid upgrade `{raw}`, expected name:old_version:new_version")
    name, old, new = parts
    spec = PackageSpec.parse(name)
    if spec.version:
        raise UsageError(f"Invalid upgrade `{raw}`, expected name:old_version:new_version")
    return VersionDelta(name=spec.name, old_version=old or None, new_version=new)


def cmd_apply_upgrades(
    args: Any,
    printer: Printer,
    registry: HookRegistry | None = None,
    hook_group: str | None = None,
) -> int:
    """Run upgrade hooks for explicit name:old:new triples.

    This is the second step after an upgrade halted because depbump's own
    dependencies changed.
    """
    try:
        deltas = [parse_upgrade_triple(raw) for raw in args.packages]
    except UsageError as e:
        printer.error(str(e))
        return EXIT_ERROR
    if not deltas:
        printer.error("Must specify at least one upgrade as name:old_version:new_version.")
        return EXIT_ERROR

    if registry is None:
        registry = HookRegistry.from_entry_points(hook_group or HOOK_GROUP)

    printer.action("Running upgrade hooks")
    try:
        missing = registry.dispatch(deltas, hook_flags_for(args, bool(args.yes)))
    except HookError as e:
        printer.error(str(e))
        return EXIT_ERROR

    for delta in deltas:
        if delta.name not in missing:
            printer.version_change(delta)
    printer.missing_hooks(missing)
    printer.complete("Upgrade hooks applied")
    return EXIT_OK
