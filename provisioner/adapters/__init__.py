"""Adapters — bindings for the external tools the engine drives.

Public re-exports for convenient access.
"""

from provisioner.adapters.base import Adapter
from provisioner.adapters.mock import MockExecutor
from provisioner.adapters.registry import AdapterRegistry, default_registry
from provisioner.adapters.shell.command import CommandExecutor, CommandResult

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "CommandExecutor",
    "CommandResult",
    "MockExecutor",
    "default_registry",
]
