"""
Resource specifications — the declarative input of a run.

A ResourceSpec says what should be true on the workstation, never how
to make it true. The catalog supplies the how for each kind.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ResourceKind(str, Enum):
    """Kinds of desired-state items the engine knows how to reconcile."""

    DIRECTORY = "directory"
    REMOVED_DIRECTORY = "removed_directory"
    PACKAGE_INSTALLED = "package_installed"
    PACKAGE_REMOVED = "package_removed"
    REPOSITORY_ENABLED = "repository_enabled"
    APP_PACKAGE_INSTALLED = "app_package_installed"
    DESKTOP_SETTING = "desktop_setting"
    EXTENSION_ENABLED = "extension_enabled"
    SSH_KEY_PRESENT = "ssh_key_present"
    GIT_REPO_CLONED = "git_repo_cloned"
    SYMBOLIC_LINK = "symbolic_link"
    HOSTNAME = "hostname"
    PACKAGE_GROUP_INSTALLED = "package_group_installed"
    SYSTEM_UPGRADED = "system_upgraded"
    COMMAND = "command"


class FailurePolicy(str, Enum):
    """How the engine reacts when a resource cannot be converged."""

    FATAL = "fatal"
    WARN_CONTINUE = "warn_continue"
    SKIP_IF_UNSUPPORTED = "skip_if_unsupported"


class ResourceSpec(BaseModel):
    """One desired-state item.

    ``identity`` names the target within its kind (a path, a package
    name, ``schema key`` for settings). ``desired`` carries the
    kind-specific payload. ``failure_policy`` of None means "use the
    catalog default for this kind".
    """

    model_config = ConfigDict(frozen=True)

    kind: ResourceKind
    identity: str
    desired: dict[str, Any] = Field(default_factory=dict)
    failure_policy: FailurePolicy | None = None
    description: str = ""
    section: str = ""

    @field_validator("identity")
    @classmethod
    def _identity_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("identity must not be empty")
        return value

    @property
    def key(self) -> tuple[str, str]:
        """Uniqueness key within a single run."""
        return (self.kind.value, self.identity)

    @property
    def label(self) -> str:
        """Short human-readable name, e.g. ``package_installed:git``."""
        return f"{self.kind.value}:{self.identity}"
