"""
Filesystem adapter — directories and symbolic links.

Queries read the filesystem directly. Mutations go through the command
executor (``mkdir``, ``rmdir``, ``ln``) so they are logged, dry-runnable
and can be elevated for paths outside the user's home.
"""

from __future__ import annotations

import logging
from pathlib import Path

from provisioner.adapters.base import Adapter
from provisioner.adapters.shell.command import CommandResult

logger = logging.getLogger(__name__)


class FilesystemAdapter(Adapter):
    """Directory and link operations."""

    tool = "mkdir"

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True  # filesystem is always available

    # ── Queries ─────────────────────────────────────────────────

    def exists(self, path: str | Path) -> bool:
        """True for anything at ``path``, including a dangling link."""
        p = Path(path)
        return p.is_symlink() or p.exists()

    def is_dir(self, path: str | Path) -> bool:
        return Path(path).is_dir()

    def is_empty(self, path: str | Path) -> bool:
        """True if ``path`` is a directory with no entries."""
        p = Path(path)
        if not p.is_dir():
            return False
        return next(p.iterdir(), None) is None

    # ── Mutations ───────────────────────────────────────────────

    def make_directory(
        self, path: str | Path, mode: str | None = None, elevated: bool = False
    ) -> CommandResult:
        argv = ["mkdir", "-p"]
        if mode:
            argv += ["-m", mode]
        return self.executor.run([*argv, str(path)], elevated=elevated)

    def remove_empty_directory(self, path: str | Path, elevated: bool = False) -> CommandResult:
        # rmdir refuses non-empty directories, which is the guarantee we want
        return self.executor.run(["rmdir", str(path)], elevated=elevated)

    def symlink(self, target: str | Path, link: str | Path, elevated: bool = False) -> CommandResult:
        """Create ``link`` pointing at ``target``, creating the parent first."""
        parent = Path(link).parent
        if not parent.is_dir():
            result = self.make_directory(parent, elevated=elevated)
            if not result.ok:
                return result
        return self.executor.run(["ln", "-s", str(target), str(link)], elevated=elevated)
