"""
packages.py - Package arguments: parsing and validation.

A package argument is a name, optionally pinned to a target version with
"@": "httpx" or "httpx@0.28". Several may be given in one argument separated
by commas.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from packaging.utils import canonicalize_name
from packaging.version import InvalidVersion, Version

from .errors import UsageError
from .manifest import Declaration

_NAME_RE = re.compile(r"^([A-Z0-9]|[A-Z0-9][A-Z0-9._-]*[A-Z0-9])$", re.IGNORECASE)


@dataclass(frozen=True)
class PackageSpec:
    """A requested package, with an optional explicit target version."""

    name: str
    version: str | None = None
    raw: str = ""

    @classmethod
    def parse(cls, raw: str) -> PackageSpec:
        """Parse "name" or "name@version".

        Raises:
            UsageError: If the name or version is not valid
        """
        name, sep, version = raw.strip().partition("@")
        if not _NAME_RE.match(name) or (sep and not version):
            raise UsageError(f"Invalid package identifier: {raw}")
        if version:
            try:
                Version(version)
            except InvalidVersion:
                raise UsageError(f"Invalid package identifier: {raw}") from None
        return cls(name=canonicalize_name(name), version=version or None, raw=raw)

    def requirement(self) -> str | None:
        """Requirement that allows upgrading to the pinned version.

        "1.2" becomes "~=1.2" (>=1.2,<2) and "1.2.1" becomes "~=1.2.1"
        (>=1.2.1,<1.3). A bare major version becomes "==2.*".
        """
        if self.version is None:
            return None
        if len(Version(self.version).release) == 1:
            return f"{self.name}=={self.version}.*"
        return f"{self.name}~={self.version}"


@dataclass(frozen=True)
class EnvironmentMismatch:
    """A requested package that is not installed in the current environment."""

    spec: PackageSpec
    allowed_envs: frozenset[str]
    env: str

    @property
    def message(self) -> str:
        allowed = ", ".join(sorted(self.allowed_envs))
        first = sorted(self.allowed_envs)[0]
        return (
            f"Cannot apply upgrade `{self.spec.raw}` because the package `{self.spec.name}` "
            f"is only included in the following environments: `{allowed}`, "
            f"but the current environment is `{self.env}`.\n\n"
            f"Rerun this command with `DEPBUMP_ENV={first} depbump upgrade ...`"
        )


def parse_package_args(values: Iterable[str]) -> list[PackageSpec]:
    """Parse positional package arguments, splitting on commas."""
    specs: list[PackageSpec] = []
    for value in values:
        for part in value.split(","):
            if part.strip():
                specs.append(PackageSpec.parse(part))
    return specs


def validate_packages(
    specs: Iterable[PackageSpec],
    declarations: dict[str, Declaration],
    env: str,
) -> list[EnvironmentMismatch]:
    """Check requested packages against the manifest.

    Raises:
        UsageError: If an explicit version targets a path, git or url dependency

    Returns:
        Packages restricted to other environments (warnings, not errors)
    """
    mismatches: list[EnvironmentMismatch] = []

    for spec in specs:
        decl = declarations.get(spec.name)
        if decl is None:
            continue

        if spec.version and not decl.source.version_upgradable:
            raise UsageError(
                f"The update specification `{spec.raw}` is invalid because the package "
                f"`{spec.name}` is pointing at a {decl.source.value} source. "
                "These do not currently accept versions while upgrading."
            )

        allowed = decl.allowed_envs
        if allowed and env not in allowed:
            mismatches.append(EnvironmentMismatch(spec=spec, allowed_envs=allowed, env=env))

    return mismatches
