"""
DNF adapter — system package manager.

Presence checks use ``rpm -q``, which is fast and never touches the
network. Mutations use ``dnf`` with ``-y``: the engine is
non-interactive, confirmation belongs to whoever wraps it.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from provisioner.adapters.base import Adapter
from provisioner.adapters.shell.command import CommandResult
from provisioner.core.errors import ProbeUnavailable

logger = logging.getLogger(__name__)

# dnf check-update exits 100 when updates are available
EXIT_UPDATES_AVAILABLE = 100


class DnfAdapter(Adapter):
    """Install, remove and upgrade RPM packages."""

    tool = "dnf"

    @property
    def name(self) -> str:
        return "dnf"

    # ── Queries ─────────────────────────────────────────────────

    def is_installed(self, package: str) -> bool:
        result = self._query(["rpm", "-q", "--quiet", package])
        return result.exit_code == 0

    def group_installed(self, group: str) -> bool:
        result = self._query(["dnf", "group", "list", "--installed", "-q"])
        if not result.ok:
            raise ProbeUnavailable(f"dnf group list failed: {result.error_summary}")
        wanted = group.strip().lower()
        for line in result.stdout.splitlines():
            # dnf5 prints "id  name  installed" columns, dnf4 indented names
            columns = [c.lower() for c in re.split(r"\s{2,}", line.strip()) if c]
            if wanted in columns:
                return True
        return False

    def list_upgradable(self) -> list[str]:
        """Package names with pending updates."""
        result = self._query(["dnf", "check-update", "-q"])
        if result.exit_code == 0:
            return []
        if result.exit_code != EXIT_UPDATES_AVAILABLE:
            raise ProbeUnavailable(f"dnf check-update failed: {result.error_summary}")
        names = []
        for line in result.stdout.splitlines():
            parts = line.split()
            # Skip headers like "Obsoleting Packages" and continuation lines
            if len(parts) >= 3 and "." in parts[0]:
                names.append(parts[0].rsplit(".", 1)[0])
        return names

    # ── Mutations ───────────────────────────────────────────────

    def install(self, packages: Sequence[str]) -> CommandResult:
        return self.executor.run(["dnf", "install", "-y", *packages], elevated=True)

    def remove(self, packages: Sequence[str]) -> CommandResult:
        return self.executor.run(["dnf", "remove", "-y", *packages], elevated=True)

    def group_install(
        self, group: str, with_optional: bool = False, allow_erasing: bool = False
    ) -> CommandResult:
        argv = ["dnf", "group", "install", "-y"]
        if with_optional:
            argv.append("--with-optional")
        if allow_erasing:
            argv.append("--allowerasing")
        return self.executor.run([*argv, group], elevated=True)

    def upgrade(self, refresh: bool = True) -> CommandResult:
        argv = ["dnf", "upgrade", "-y"]
        if refresh:
            argv.append("--refresh")
        return self.executor.run(argv, elevated=True)

    def autoremove(self) -> CommandResult:
        return self.executor.run(["dnf", "autoremove", "-y"], elevated=True)
