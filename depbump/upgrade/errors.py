"""
errors.py - Exception types raised by the upgrade engine.

The engine raises; commands.py turns these into printer output and exit codes.
"""

from __future__ import annotations


class UpgradeError(Exception):
    """Base class for all depbump upgrade failures."""


class UsageError(UpgradeError):
    """Bad command-line input. Reported before anything is mutated."""


class ResolutionError(UpgradeError):
    """The package manager failed to update the lock file."""

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


class ResolutionAborted(ResolutionError):
    """The operator aborted resolution (declined a prompt or interrupted uv)."""


class HookError(UpgradeError):
    """An upgrade hook raised while migrating a package."""

    def __init__(self, package: str, cause: BaseException):
        super().__init__(f"Upgrade hook for {package} failed: {cause}")
        self.package = package
        self.cause = cause
