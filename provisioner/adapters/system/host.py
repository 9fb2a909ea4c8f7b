"""
Host adapter — hostname and distribution facts.
"""

from __future__ import annotations

import logging

from provisioner.adapters.base import Adapter
from provisioner.adapters.shell.command import CommandResult
from provisioner.core.errors import ProbeUnavailable

logger = logging.getLogger(__name__)


class HostAdapter(Adapter):
    """Wraps ``hostnamectl`` and ``rpm -E`` macros."""

    tool = "hostnamectl"

    @property
    def name(self) -> str:
        return "hostnamectl"

    def current_hostname(self) -> str:
        result = self._query(["hostnamectl", "--static"])
        if not result.ok:
            raise ProbeUnavailable(f"hostnamectl failed: {result.error_summary}")
        return result.stdout.strip()

    def set_hostname(self, hostname: str) -> CommandResult:
        return self.executor.run(["hostnamectl", "set-hostname", hostname], elevated=True)

    def fedora_version(self) -> str | None:
        """Release number from ``rpm -E %fedora``, or None off Fedora."""
        try:
            result = self._query(["rpm", "-E", "%fedora"])
        except ProbeUnavailable:
            logger.debug("rpm not available; no fedora_version fact")
            return None
        version = result.stdout.strip()
        # rpm echoes the macro back unexpanded on non-Fedora systems
        if not result.ok or not version.isdigit():
            return None
        return version
