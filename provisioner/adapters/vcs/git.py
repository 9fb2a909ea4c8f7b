"""
Git adapter — clone repositories.

Only cloning is needed to converge a workstation; the engine treats a
non-empty destination as "already cloned" and never inspects the repo.
"""

from __future__ import annotations

from pathlib import Path

from provisioner.adapters.base import Adapter
from provisioner.adapters.shell.command import CommandResult


class GitAdapter(Adapter):
    """Git version control operations."""

    tool = "git"

    @property
    def name(self) -> str:
        return "git"

    def clone(
        self,
        url: str,
        dest: str | Path,
        branch: str | None = None,
        depth: int | None = None,
    ) -> CommandResult:
        argv = ["git", "clone"]
        if branch:
            argv += ["--branch", branch]
        if depth:
            argv += ["--depth", str(depth)]
        return self.executor.run([*argv, url, str(dest)])
