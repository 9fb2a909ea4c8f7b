"""
Flatpak adapter — desktop app store.

Apps and remotes are managed in the system installation by default,
matching how a fresh workstation is set up for every user.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from provisioner.adapters.base import Adapter
from provisioner.adapters.shell.command import CommandExecutor, CommandResult
from provisioner.core.errors import ProbeUnavailable

logger = logging.getLogger(__name__)

DEFAULT_REMOTE = "flathub"


class FlatpakAdapter(Adapter):
    """Install and update flatpak applications.

    Args:
        executor: Shared command executor.
        installation: ``system`` or ``user``. System operations are
            elevated.
    """

    tool = "flatpak"

    def __init__(self, executor: CommandExecutor, installation: str = "system"):
        super().__init__(executor)
        if installation not in ("system", "user"):
            raise ValueError(f"Unknown flatpak installation: {installation}")
        self.installation = installation

    @property
    def name(self) -> str:
        return "flatpak"

    @property
    def _scope(self) -> str:
        return f"--{self.installation}"

    @property
    def _elevated(self) -> bool:
        return self.installation == "system"

    # ── Queries ─────────────────────────────────────────────────

    def is_installed(self, app_id: str) -> bool:
        result = self._query(["flatpak", "info", self._scope, app_id])
        return result.exit_code == 0

    def has_remote(self, remote: str) -> bool:
        result = self._query(["flatpak", "remotes", self._scope, "--columns=name"])
        if not result.ok:
            raise ProbeUnavailable(f"flatpak remotes failed: {result.error_summary}")
        return remote in {line.strip() for line in result.stdout.splitlines()}

    def list_updates(self) -> list[str]:
        """Application IDs with pending updates."""
        result = self._query(
            ["flatpak", "remote-ls", self._scope, "--updates", "--columns=application"]
        )
        if not result.ok:
            raise ProbeUnavailable(f"flatpak remote-ls failed: {result.error_summary}")
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    # ── Mutations ───────────────────────────────────────────────

    def install(self, app_ids: Sequence[str], remote: str = DEFAULT_REMOTE) -> CommandResult:
        return self.executor.run(
            ["flatpak", "install", self._scope, "-y", "--noninteractive", remote, *app_ids],
            elevated=self._elevated,
        )

    def update(self) -> CommandResult:
        return self.executor.run(
            ["flatpak", "update", self._scope, "-y", "--noninteractive"],
            elevated=self._elevated,
        )

    def add_remote(self, remote: str, url: str) -> CommandResult:
        return self.executor.run(
            ["flatpak", "remote-add", self._scope, "--if-not-exists", remote, url],
            elevated=self._elevated,
        )
