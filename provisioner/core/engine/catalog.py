"""
Action catalog — what the engine knows about each resource kind.

Each kind maps to one CatalogEntry: the probe that reads current state,
the action that converges it, the adapter both rely on, the default
failure policy and the payload fields a spec must carry. The reconciler
only ever goes through this table; adding a kind means registering one
entry.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from provisioner.adapters.registry import AdapterRegistry
from provisioner.adapters.shell.command import CommandResult
from provisioner.core.engine import actions, probes
from provisioner.core.errors import ConfigurationError
from provisioner.core.models.outcome import ProbeResult
from provisioner.core.models.resource import FailurePolicy, ResourceKind, ResourceSpec

ProbeFn = Callable[[ResourceSpec, AdapterRegistry], ProbeResult]
ApplyFn = Callable[[ResourceSpec, AdapterRegistry, ProbeResult], CommandResult]


@dataclass(frozen=True)
class CatalogEntry:
    """Probe, apply and policy for one resource kind."""

    kind: ResourceKind
    adapter: str
    probe: ProbeFn
    apply: ApplyFn
    default_policy: FailurePolicy = FailurePolicy.WARN_CONTINUE
    required: tuple[str, ...] = field(default_factory=tuple)
    choices: dict[str, tuple[str, ...]] = field(default_factory=dict)


class ActionCatalog:
    """Registry of catalog entries keyed by kind."""

    def __init__(self, entries: Iterable[CatalogEntry] = ()):
        self._entries: dict[ResourceKind, CatalogEntry] = {}
        for entry in entries:
            self.register(entry)

    def register(self, entry: CatalogEntry) -> None:
        self._entries[entry.kind] = entry

    def get(self, kind: ResourceKind) -> CatalogEntry:
        entry = self._entries.get(kind)
        if entry is None:
            raise ConfigurationError(f"No catalog entry for kind '{kind.value}'")
        return entry

    def kinds(self) -> list[ResourceKind]:
        return list(self._entries)

    def __contains__(self, kind: object) -> bool:
        return kind in self._entries

    def policy_for(self, spec: ResourceSpec) -> FailurePolicy:
        """The spec's own policy, or the kind's default."""
        if spec.failure_policy is not None:
            return spec.failure_policy
        return self.get(spec.kind).default_policy

    def validate(self, spec: ResourceSpec) -> None:
        """Check a spec's payload against its entry.

        Raises:
            ConfigurationError: Unknown kind, a missing required field
                or a value outside the allowed choices.
        """
        entry = self.get(spec.kind)
        missing = [f for f in entry.required if spec.desired.get(f) in (None, "", [])]
        if missing:
            raise ConfigurationError(
                f"{spec.label}: missing required field(s): {', '.join(missing)}"
            )
        for name, allowed in entry.choices.items():
            value = spec.desired.get(name)
            if value is not None and value not in allowed:
                raise ConfigurationError(
                    f"{spec.label}: {name} must be one of {', '.join(allowed)}, got {value!r}"
                )


def default_catalog() -> ActionCatalog:
    """Catalog with an entry for every built-in kind."""
    K = ResourceKind
    P = FailurePolicy
    return ActionCatalog([
        CatalogEntry(K.DIRECTORY, "filesystem", probes.probe_directory, actions.apply_directory),
        CatalogEntry(
            K.REMOVED_DIRECTORY,
            "filesystem",
            probes.probe_removed_directory,
            actions.apply_removed_directory,
        ),
        CatalogEntry(
            K.SYMBOLIC_LINK,
            "filesystem",
            probes.probe_symbolic_link,
            actions.apply_symbolic_link,
            required=("target",),
        ),
        CatalogEntry(
            K.PACKAGE_INSTALLED,
            "dnf",
            probes.probe_packages_installed,
            actions.apply_packages_installed,
            default_policy=P.FATAL,
        ),
        CatalogEntry(
            K.PACKAGE_REMOVED,
            "dnf",
            probes.probe_packages_removed,
            actions.apply_packages_removed,
        ),
        CatalogEntry(
            K.PACKAGE_GROUP_INSTALLED,
            "dnf",
            probes.probe_package_group,
            actions.apply_package_group,
            default_policy=P.FATAL,
        ),
        CatalogEntry(
            K.REPOSITORY_ENABLED,
            "repos",
            probes.probe_repository,
            actions.apply_repository,
            default_policy=P.FATAL,
            choices={"type": ("release_package", "repo_file", "copr", "flatpak_remote")},
        ),
        CatalogEntry(
            K.APP_PACKAGE_INSTALLED,
            "flatpak",
            probes.probe_apps_installed,
            actions.apply_apps_installed,
        ),
        CatalogEntry(
            K.SYSTEM_UPGRADED,
            "dnf",
            probes.probe_system_upgraded,
            actions.apply_system_upgraded,
            choices={"manager": ("dnf", "flatpak")},
        ),
        CatalogEntry(
            K.DESKTOP_SETTING,
            "gsettings",
            probes.probe_desktop_setting,
            actions.apply_desktop_setting,
            default_policy=P.SKIP_IF_UNSUPPORTED,
            required=("schema", "key", "value"),
        ),
        CatalogEntry(
            K.EXTENSION_ENABLED,
            "gnome-extensions",
            probes.probe_extension,
            actions.apply_extension,
            default_policy=P.SKIP_IF_UNSUPPORTED,
        ),
        CatalogEntry(K.SSH_KEY_PRESENT, "ssh-keygen", probes.probe_ssh_key, actions.apply_ssh_key),
        CatalogEntry(
            K.GIT_REPO_CLONED,
            "git",
            probes.probe_git_clone,
            actions.apply_git_clone,
            required=("url",),
        ),
        CatalogEntry(
            K.HOSTNAME,
            "hostnamectl",
            probes.probe_hostname,
            actions.apply_hostname,
            default_policy=P.FATAL,
        ),
        CatalogEntry(
            K.COMMAND,
            "shell",
            probes.probe_command,
            actions.apply_command,
            required=("run",),
        ),
    ])
