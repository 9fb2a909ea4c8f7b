"""
Adapter registry — the engine's view of the external world.

Catalog probes and actions look adapters up by name here; they never
construct them. The registry also answers "which backends does this
machine have?" for the ``adapters`` command.
"""

from __future__ import annotations

import logging
import shutil
from typing import Any, TypeVar

from provisioner.adapters.base import Adapter
from provisioner.adapters.shell.command import CommandExecutor
from provisioner.core.errors import ProbeUnavailable

logger = logging.getLogger(__name__)

A = TypeVar("A", bound=Adapter)


class AdapterRegistry:
    """Central registry of adapter instances, keyed by name.

    All adapters in one registry normally share one CommandExecutor,
    so dry-run and privilege settings apply uniformly.
    """

    def __init__(self, executor: CommandExecutor | None = None):
        self.executor = executor or CommandExecutor()
        self._adapters: dict[str, Adapter] = {}

    def register(self, adapter: Adapter) -> None:
        """Bind ``adapter`` under its name; a later registration wins."""
        if adapter.name in self._adapters:
            logger.warning("Adapter %s replaced by %s", adapter.name, type(adapter).__name__)
        self._adapters[adapter.name] = adapter
        logger.debug("Adapter %s bound to %s", adapter.name, adapter.tool or "no tool")

    def unregister(self, name: str) -> None:
        self._adapters.pop(name, None)

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def require(self, name: str, expected: type[A]) -> A:
        """Look up an adapter that a probe or action cannot do without.

        Raises:
            ProbeUnavailable: Nothing registered under ``name``.
        """
        adapter = self._adapters.get(name)
        if adapter is None:
            raise ProbeUnavailable(f"No adapter registered for '{name}'")
        if not isinstance(adapter, expected):
            raise TypeError(f"Adapter '{name}' is {type(adapter).__name__}, not {expected.__name__}")
        return adapter

    def list_adapters(self) -> list[str]:
        return list(self._adapters)

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Which backends this machine has, keyed by adapter name.

        ``path`` is where the tool resolves on $PATH, or None.
        """
        status: dict[str, dict[str, Any]] = {}
        for name, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except OSError as e:
                logger.debug("Availability check for %s failed: %s", name, e)
                available = False
            status[name] = {
                "name": name,
                "tool": adapter.tool,
                "available": available,
                "path": shutil.which(adapter.tool) if adapter.tool else None,
                "type": type(adapter).__name__,
            }
        return status


def default_registry(
    executor: CommandExecutor,
    repos_dir: str = "/etc/yum.repos.d",
    flatpak_installation: str = "system",
) -> AdapterRegistry:
    """Build a registry with every built-in adapter bound to ``executor``."""
    from provisioner.adapters.desktop.extensions import GnomeExtensionsAdapter
    from provisioner.adapters.desktop.gsettings import GSettingsAdapter
    from provisioner.adapters.packages.dnf import DnfAdapter
    from provisioner.adapters.packages.flatpak import FlatpakAdapter
    from provisioner.adapters.packages.repos import RepositoryAdapter
    from provisioner.adapters.shell.filesystem import FilesystemAdapter
    from provisioner.adapters.system.host import HostAdapter
    from provisioner.adapters.system.keygen import KeygenAdapter
    from provisioner.adapters.vcs.git import GitAdapter

    # Remotes and apps must land in the same flatpak installation
    flatpak = FlatpakAdapter(executor, installation=flatpak_installation)

    registry = AdapterRegistry(executor)
    registry.register(FilesystemAdapter(executor))
    registry.register(DnfAdapter(executor))
    registry.register(RepositoryAdapter(executor, repos_dir=repos_dir, flatpak=flatpak))
    registry.register(flatpak)
    registry.register(GSettingsAdapter(executor))
    registry.register(GnomeExtensionsAdapter(executor))
    registry.register(GitAdapter(executor))
    registry.register(KeygenAdapter(executor))
    registry.register(HostAdapter(executor))
    return registry
