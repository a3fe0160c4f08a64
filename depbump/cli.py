"""
cli.py - Typer-based CLI for depbump.

Dependency upgrades for uv projects, with per-package upgrade hooks and a
changelog digest of everything that moved.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from types import SimpleNamespace
from typing import Annotated, Any, ParamSpec, TypeVar, cast

import typer
from rich.logging import RichHandler

from depbump import __version__
from depbump.commands import cmd_apply_upgrades, cmd_upgrade
from depbump.config import ProjectFiles, Settings, find_project_root, get_project_files, load_settings
from depbump.upgrade_printer import UpgradePrinter as Printer

# ═══════════════════════════════════════════════════════════════════════════════
# Application State
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class AppState:
    """Global application state, initialized in the main callback."""

    printer: Printer | None = None
    project_root: Path | None = None
    files: ProjectFiles | None = None
    settings: Settings | None = None
    verbose: bool = False


state = AppState()

# ═══════════════════════════════════════════════════════════════════════════════
# Typer App
# ═══════════════════════════════════════════════════════════════════════════════

app = typer.Typer(
    name="depbump",
    help="Upgrade uv project dependencies with hooks and changelog digests",
    add_completion=False,
    rich_markup_mode=None,
    no_args_is_help=True,
)

P = ParamSpec("P")
R = TypeVar("R")


def _typed_command(*args: Any, **kwargs: Any) -> Callable[[Callable[P, R]], Callable[P, R]]:
    return cast(Callable[[Callable[P, R]], Callable[P, R]], app.command(*args, **kwargs))


def _typed_callback(*args: Any, **kwargs: Any) -> Callable[[Callable[P, R]], Callable[P, R]]:
    return cast(Callable[[Callable[P, R]], Callable[P, R]], app.callback(*args, **kwargs))


# ═══════════════════════════════════════════════════════════════════════════════
# Type Aliases for Common Options
# ═══════════════════════════════════════════════════════════════════════════════

OptYes = Annotated[bool, typer.Option("--yes", "-y", help="Accept all changes and restore automatically on failure")]
OptPlain = Annotated[bool, typer.Option("--plain", help="Plain text output")]
OptVerbose = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")]
OptHookFlag = Annotated[
    list[str] | None,
    typer.Option("--hook-flag", help="Flag passed to every upgrade hook (repeatable)"),
]

# Upgrade-specific options
OptAll = Annotated[bool, typer.Option("--all", "-a", help="Upgrade all dependencies")]
OptOnly = Annotated[str | None, typer.Option("--only", "-o", help="Only sync this dependency group")]
OptTarget = Annotated[str | None, typer.Option("--target", "-t", help="Sync for this target platform")]
OptNoArchivesCheck = Annotated[
    bool,
    typer.Option("--no-archives-check", "-n", help="Skip the uv toolchain check"),
]
OptGitCi = Annotated[
    bool,
    typer.Option("--git-ci", "-g", help="Compare against uv.lock at HEAD~1 instead of resolving (implies --yes)"),
]


# ═══════════════════════════════════════════════════════════════════════════════
# Helper: Args-like object for commands.py
# ═══════════════════════════════════════════════════════════════════════════════


_DEFAULT_ARGS = {
    "packages": [],
    "yes": False,
    "verbose": False,
    "hook_flag": [],
    # Upgrade
    "all": False,
    "only": None,
    "target": None,
    "no_archives_check": False,
    "git_ci": False,
}


def make_args(**overrides: Any) -> SimpleNamespace:
    """Create an Args-like namespace with defaults + overrides."""
    data = dict(_DEFAULT_ARGS)

    packages = overrides.pop("packages", None)
    if packages is not None:
        data["packages"] = list(packages)

    hook_flag = overrides.pop("hook_flag", None)
    if hook_flag is not None:
        data["hook_flag"] = list(hook_flag)

    data.update(overrides)
    return SimpleNamespace(**data)


def configure_logging(verbose: bool) -> None:
    """Send library logging through Rich; debug with --verbose, warnings otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=verbose)],
        force=True,
    )


def _init_state(
    plain: bool | None = None,
    unicode: bool | None = None,
    minimal: bool | None = None,
    verbose: bool | None = None,
    need_project: bool = True,
) -> None:
    """Initialize global state (called at start of each command)."""
    use_plain = plain if plain is not None else (state.printer.use_plain if state.printer else False)
    use_minimal = minimal if minimal is not None else (state.printer.use_minimal if state.printer else False)
    use_unicode = unicode if unicode is not None else (state.printer.use_unicode if state.printer else False)

    if state.printer is None or (
        state.printer.use_plain != use_plain
        or state.printer.use_minimal != use_minimal
        or state.printer.use_unicode != use_unicode
    ):
        state.printer = Printer(
            use_plain=use_plain,
            use_minimal=use_minimal,
            use_unicode=use_unicode,
        )

    if verbose is not None:
        state.verbose = verbose
        configure_logging(verbose)

    if need_project and state.project_root is None:
        try:
            state.project_root = find_project_root()
            state.settings = load_settings(state.project_root)
            state.files = get_project_files(state.project_root, state.settings)
        except Exception as e:
            state.printer.error(str(e))
            raise typer.Exit(1) from None


def _require_state() -> tuple[Printer, ProjectFiles, Settings]:
    """Return initialized state or exit if missing."""
    if state.printer is None or state.files is None or state.settings is None:
        raise typer.Exit(1)
    return state.printer, state.files, state.settings


def _version_callback(value: bool) -> None:
    if value:
        print(f"depbump {__version__}")
        raise typer.Exit(0)


# ═══════════════════════════════════════════════════════════════════════════════
# Main Callback (global options only)
# ═══════════════════════════════════════════════════════════════════════════════


@_typed_callback()
def main(
    plain: OptPlain = False,
    unicode: Annotated[bool, typer.Option("--unicode", help="Use Unicode glyphs")] = False,
    minimal: Annotated[bool, typer.Option("--minimal", help="Use ASCII glyphs")] = False,
    verbose: OptVerbose = False,
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version and exit"),
    ] = False,
) -> None:
    """
    Upgrade uv project dependencies.

    Examples:
        depbump upgrade httpx             # Upgrade one package
        depbump upgrade httpx@0.28,rich   # Pin a target version
        depbump upgrade --all --yes       # Upgrade everything, no prompts
    """
    _init_state(
        plain=plain if plain else None,
        unicode=unicode if unicode else None,
        minimal=minimal if minimal else None,
        verbose=verbose,
        need_project=False,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Subcommands
# ═══════════════════════════════════════════════════════════════════════════════


@_typed_command("upgrade")
def upgrade_cmd(
    packages: Annotated[list[str] | None, typer.Argument(help="Packages to upgrade, optionally name@version")] = None,
    yes: OptYes = False,
    all_packages: OptAll = False,
    only: OptOnly = None,
    target: OptTarget = None,
    no_archives_check: OptNoArchivesCheck = False,
    git_ci: OptGitCi = False,
    hook_flag: OptHookFlag = None,
) -> None:
    """Upgrade dependencies, run their upgrade hooks and record changelogs."""
    _init_state()

    args = make_args(
        packages=packages or [],
        yes=yes or git_ci,
        all=all_packages,
        only=only,
        target=target,
        no_archives_check=no_archives_check,
        git_ci=git_ci,
        hook_flag=hook_flag or [],
        verbose=state.verbose,
    )

    printer, files, settings = _require_state()
    result = cmd_upgrade(args, printer, files, settings)
    raise typer.Exit(result)


@_typed_command("apply-upgrades")
def apply_upgrades_cmd(
    upgrades: Annotated[list[str], typer.Argument(help="Upgrades as name:old_version:new_version")],
    yes: OptYes = False,
    hook_flag: OptHookFlag = None,
) -> None:
    """Run upgrade hooks for upgrades that were already locked."""
    _init_state()

    args = make_args(packages=upgrades, yes=yes, hook_flag=hook_flag or [])
    printer, _files, settings = _require_state()
    result = cmd_apply_upgrades(args, printer, hook_group=settings.hook_group)
    raise typer.Exit(result)


# ═══════════════════════════════════════════════════════════════════════════════
# CLI Entry Point
# ═══════════════════════════════════════════════════════════════════════════════


def run_cli() -> None:
    app()


if __name__ == "__main__":
    run_cli()
