"""
Adapter base — the contract between the engine and external tools.

Every external system the engine touches (package manager, app store,
settings store, version control) sits behind an adapter. Adapters own
the argv of their tool; the engine never builds a command line itself.

Query methods are read-only and raise ProbeUnavailable when the tool is
missing. Mutating methods return a CommandResult and never raise for a
non-zero exit.
"""

from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from collections.abc import Sequence

from provisioner.adapters.shell.command import EXIT_NOT_FOUND, CommandExecutor, CommandResult
from provisioner.core.errors import ProbeUnavailable


class Adapter(ABC):
    """Abstract base class for all adapters.

    To create a new adapter:
        1. Subclass Adapter
        2. Implement name and (optionally) is_available
        3. Register it in the AdapterRegistry
    """

    #: Executable this adapter drives; used by the default is_available.
    tool: str = ""

    def __init__(self, executor: CommandExecutor):
        self.executor = executor

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'dnf', 'gsettings', 'git')."""

    def is_available(self) -> bool:
        """Check if the underlying tool is installed. Fast, never raises."""
        return bool(self.tool) and shutil.which(self.tool) is not None

    def _query(self, argv: Sequence[str]) -> CommandResult:
        """Run a read-only command for a probe.

        Raises:
            ProbeUnavailable: The tool itself could not be run.
        """
        result = self.executor.run(argv, mutating=False)
        if result.exit_code == EXIT_NOT_FOUND:
            raise ProbeUnavailable(f"{self.name}: {result.error_summary}")
        return result

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
