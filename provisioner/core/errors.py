"""
Provisioner errors.

The core only defines exceptions; the CLI layer decides how they are shown.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from provisioner.adapters.shell.command import CommandResult
    from provisioner.core.models.report import RunReport


class ProvisionError(Exception):
    """Base error for the provisioner."""


class ConfigurationError(ProvisionError):
    """The desired-state document or a resource list is invalid.

    Raised before planning starts, so no probe or mutation has happened.
    """


class ProbeUnavailable(ProvisionError):
    """The backend a probe relies on is not present on this system."""


class ApplyFailed(ProvisionError):
    """An apply command exited non-zero."""

    def __init__(self, result: CommandResult, message: str | None = None):
        self.result = result
        super().__init__(message or result.error_summary)


class RunAborted(ProvisionError):
    """A run stopped early on a fatal failure or a cancellation request."""

    def __init__(self, report: RunReport):
        self.report = report
        super().__init__(report.abort_reason or "run aborted")
