"""
GNOME extensions adapter — enable shell extensions by UUID.
"""

from __future__ import annotations

from provisioner.adapters.base import Adapter
from provisioner.adapters.shell.command import CommandResult
from provisioner.core.errors import ProbeUnavailable


class GnomeExtensionsAdapter(Adapter):
    """Wraps the ``gnome-extensions`` CLI."""

    tool = "gnome-extensions"

    @property
    def name(self) -> str:
        return "gnome-extensions"

    def enabled_extensions(self) -> set[str]:
        """UUIDs of enabled extensions.

        Raises:
            ProbeUnavailable: The lister is missing or has no session
                to talk to.
        """
        result = self._query(["gnome-extensions", "list", "--enabled"])
        if not result.ok:
            raise ProbeUnavailable(f"gnome-extensions list failed: {result.error_summary}")
        return {line.strip() for line in result.stdout.splitlines() if line.strip()}

    def is_enabled(self, uuid: str) -> bool:
        return uuid in self.enabled_extensions()

    def enable(self, uuid: str) -> CommandResult:
        return self.executor.run(["gnome-extensions", "enable", uuid])
