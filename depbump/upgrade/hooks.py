"""
hooks.py - Registry of per-package upgrade hooks.

A package can ship a migration that runs when depbump moves it to a new
version. Hooks are registered under the `depbump.upgraders` entry point group,
keyed by the package name they upgrade:

    [project.entry-points."depbump.upgraders"]
    httpx = "httpx_migrations:upgrade"

A hook is called as hook(old_version, new_version, flags), where old_version
is None for a package that was just added.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from importlib.metadata import entry_points

from packaging.utils import canonicalize_name

from .errors import HookError
from .graph import VersionDelta

logger = logging.getLogger(__name__)

HOOK_GROUP = "depbump.upgraders"

UpgradeHook = Callable[[str | None, str, list[str]], None]


class HookRegistry:
    """Explicit mapping from package name to its upgrade hook."""

    def __init__(self, hooks: dict[str, UpgradeHook] | None = None):
        self._hooks: dict[str, UpgradeHook] = {}
        for name, hook in (hooks or {}).items():
            self.register(name, hook)

    @classmethod
    def from_entry_points(cls, group: str = HOOK_GROUP) -> HookRegistry:
        """Load every hook advertised by installed distributions.

        Entry points that fail to import are logged and skipped, so a broken
        hook shows up as a missing hook instead of stopping the run.
        """
        registry = cls()
        for ep in entry_points(group=group):
            try:
                hook = ep.load()
            except Exception as e:
                logger.warning("Could not load upgrade hook %s (%s): %s", ep.name, ep.value, e)
                continue
            registry.register(ep.name, hook)
        return registry

    def register(self, name: str, hook: UpgradeHook) -> None:
        self._hooks[canonicalize_name(name)] = hook

    def get(self, name: str) -> UpgradeHook | None:
        return self._hooks.get(canonicalize_name(name))

    def dispatch(self, deltas: Iterable[VersionDelta], flags: list[str] | None = None) -> list[str]:
        """Run the hook of every delta, in order.

        Returns:
            Names of packages that have no registered hook

        Raises:
            HookError: If a hook raises; later hooks are not run
        """
        missing: list[str] = []
        for delta in deltas:
            hook = self.get(delta.name)
            if hook is None:
                missing.append(delta.name)
                continue
            logger.debug("Running upgrade hook for %s", delta)
            try:
                hook(delta.old_version, delta.new_version, list(flags or []))
            except Exception as e:
                raise HookError(delta.name, e) from e
        return missing
