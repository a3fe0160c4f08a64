"""
recovery.py - Restore pyproject.toml and uv.lock after a failed upgrade.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

RECOVERY_PROMPT = """Something went wrong during the upgrade process.

{reason}

Restore {files} to their original contents?

If you don't do this, you will need to reset them to upgrade again,
or perform any upgrade steps manually."""


@dataclass
class RecoverySnapshot:
    """Byte-exact copies of files taken before any mutation.

    A None value means the file did not exist, so restoring removes it.
    """

    contents: dict[Path, bytes | None] = field(default_factory=dict)

    @classmethod
    def capture(cls, paths: Iterable[Path]) -> RecoverySnapshot:
        contents: dict[Path, bytes | None] = {}
        for path in paths:
            contents[path] = path.read_bytes() if path.exists() else None
        return cls(contents)

    @property
    def paths(self) -> list[Path]:
        return list(self.contents)

    def restore(self) -> None:
        for path, data in self.contents.items():
            if data is None:
                path.unlink(missing_ok=True)
            else:
                path.write_bytes(data)
            logger.debug("Restored %s", path)


class RecoveryManager:
    """Owns the recovery snapshot for one orchestration run."""

    def __init__(self, confirm: Callable[[str], bool], yes: bool = False):
        self.confirm = confirm
        self.yes = yes
        self.snapshot: RecoverySnapshot | None = None

    def capture(self, paths: Iterable[Path]) -> RecoverySnapshot:
        self.snapshot = RecoverySnapshot.capture(paths)
        return self.snapshot

    def discard(self) -> None:
        self.snapshot = None

    def recover(self, reason: str) -> bool:
        """Offer to restore the snapshot after a failure.

        Args:
            reason: Description of the failure, shown in the prompt

        Returns:
            True if the files were restored
        """
        if self.snapshot is None:
            return False

        files = " and ".join(path.name for path in self.snapshot.paths)
        if not self.yes and not self.confirm(RECOVERY_PROMPT.format(reason=reason, files=files)):
            logger.info("Restore declined, leaving %s as is", files)
            return False

        self.snapshot.restore()
        return True
