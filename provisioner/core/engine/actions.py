"""
Apply actions — the mutation half of each catalog entry.

An action receives the spec, the adapter registry and the probe result
from the plan, and returns the CommandResult that decides success. When
an action chains several commands it stops at the first failure and
returns that result.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable

from provisioner.adapters.desktop.extensions import GnomeExtensionsAdapter
from provisioner.adapters.desktop.gsettings import GSettingsAdapter
from provisioner.adapters.packages.dnf import DnfAdapter
from provisioner.adapters.packages.flatpak import DEFAULT_REMOTE, FlatpakAdapter
from provisioner.adapters.packages.repos import RepositoryAdapter
from provisioner.adapters.registry import AdapterRegistry
from provisioner.adapters.shell.command import CommandResult
from provisioner.adapters.shell.filesystem import FilesystemAdapter
from provisioner.adapters.system.host import HostAdapter
from provisioner.adapters.system.keygen import KeygenAdapter
from provisioner.adapters.vcs.git import GitAdapter
from provisioner.core.engine.probes import argv_of, spec_list, spec_path
from provisioner.core.models.outcome import ProbeResult
from provisioner.core.models.resource import ResourceSpec

logger = logging.getLogger(__name__)


def run_steps(steps: Iterable[Callable[[], CommandResult]]) -> CommandResult:
    """Run steps in order, stopping at the first non-zero exit."""
    result: CommandResult | None = None
    for step in steps:
        result = step()
        if not result.ok:
            return result
    if result is None:
        raise ValueError("run_steps needs at least one step")
    return result


def _fs(adapters: AdapterRegistry) -> FilesystemAdapter:
    return adapters.require("filesystem", FilesystemAdapter)


def _elevated(spec: ResourceSpec) -> bool:
    return bool(spec.desired.get("elevated", False))


# ── Filesystem ──────────────────────────────────────────────────


def apply_directory(spec: ResourceSpec, adapters: AdapterRegistry, probe: ProbeResult) -> CommandResult:
    return _fs(adapters).make_directory(
        spec_path(spec), mode=spec.desired.get("mode"), elevated=_elevated(spec)
    )


def apply_removed_directory(
    spec: ResourceSpec, adapters: AdapterRegistry, probe: ProbeResult
) -> CommandResult:
    return _fs(adapters).remove_empty_directory(spec_path(spec), elevated=_elevated(spec))


def apply_symbolic_link(
    spec: ResourceSpec, adapters: AdapterRegistry, probe: ProbeResult
) -> CommandResult:
    target = os.path.expanduser(str(spec.desired["target"]))
    return _fs(adapters).symlink(target, spec_path(spec, "link"), elevated=_elevated(spec))


def apply_ssh_key(spec: ResourceSpec, adapters: AdapterRegistry, probe: ProbeResult) -> CommandResult:
    key = spec_path(spec)
    passphrase_env = spec.desired.get("passphrase_env")
    passphrase = os.environ.get(passphrase_env, "") if passphrase_env else ""
    keygen = adapters.require("ssh-keygen", KeygenAdapter)
    return run_steps([
        lambda: _fs(adapters).make_directory(key.parent, mode="700"),
        lambda: keygen.generate(
            key,
            key_type=spec.desired.get("type", "ed25519"),
            bits=spec.desired.get("bits"),
            comment=spec.desired.get("comment", ""),
            passphrase=passphrase,
        ),
    ])


def apply_git_clone(spec: ResourceSpec, adapters: AdapterRegistry, probe: ProbeResult) -> CommandResult:
    return adapters.require("git", GitAdapter).clone(
        spec.desired["url"],
        spec_path(spec, "dest"),
        branch=spec.desired.get("branch"),
        depth=spec.desired.get("depth"),
    )


# ── Packages and repositories ───────────────────────────────────


def apply_packages_installed(
    spec: ResourceSpec, adapters: AdapterRegistry, probe: ProbeResult
) -> CommandResult:
    # Only what the probe found missing; all of them when it could not tell
    packages = probe.details.get("missing") or spec_list(spec, "packages")
    return adapters.require("dnf", DnfAdapter).install(packages)


def apply_packages_removed(
    spec: ResourceSpec, adapters: AdapterRegistry, probe: ProbeResult
) -> CommandResult:
    packages = probe.details.get("present") or spec_list(spec, "packages")
    return adapters.require("dnf", DnfAdapter).remove(packages)


def apply_package_group(
    spec: ResourceSpec, adapters: AdapterRegistry, probe: ProbeResult
) -> CommandResult:
    return adapters.require("dnf", DnfAdapter).group_install(
        str(spec.desired.get("group", spec.identity)),
        with_optional=bool(spec.desired.get("with_optional", False)),
        allow_erasing=bool(spec.desired.get("allow_erasing", False)),
    )


def apply_repository(spec: ResourceSpec, adapters: AdapterRegistry, probe: ProbeResult) -> CommandResult:
    return adapters.require("repos", RepositoryAdapter).register(spec.identity, spec.desired)


def apply_apps_installed(
    spec: ResourceSpec, adapters: AdapterRegistry, probe: ProbeResult
) -> CommandResult:
    apps = probe.details.get("missing") or spec_list(spec, "apps")
    return adapters.require("flatpak", FlatpakAdapter).install(
        apps, remote=spec.desired.get("remote", DEFAULT_REMOTE)
    )


def apply_system_upgraded(
    spec: ResourceSpec, adapters: AdapterRegistry, probe: ProbeResult
) -> CommandResult:
    manager = spec.desired.get("manager", spec.identity)
    if manager == "flatpak":
        return adapters.require("flatpak", FlatpakAdapter).update()

    dnf = adapters.require("dnf", DnfAdapter)
    steps = [lambda: dnf.upgrade(refresh=bool(spec.desired.get("refresh", True)))]
    if spec.desired.get("autoremove", False):
        steps.append(dnf.autoremove)
    return run_steps(steps)


# ── Desktop ─────────────────────────────────────────────────────


def apply_desktop_setting(
    spec: ResourceSpec, adapters: AdapterRegistry, probe: ProbeResult
) -> CommandResult:
    return adapters.require("gsettings", GSettingsAdapter).set(
        spec.desired["schema"], spec.desired["key"], spec.desired["value"]
    )


def apply_extension(spec: ResourceSpec, adapters: AdapterRegistry, probe: ProbeResult) -> CommandResult:
    uuid = spec.desired.get("uuid", spec.identity)
    return adapters.require("gnome-extensions", GnomeExtensionsAdapter).enable(uuid)


# ── System ──────────────────────────────────────────────────────


def apply_hostname(spec: ResourceSpec, adapters: AdapterRegistry, probe: ProbeResult) -> CommandResult:
    name = str(spec.desired.get("name", spec.identity))
    return adapters.require("hostnamectl", HostAdapter).set_hostname(name)


def apply_command(spec: ResourceSpec, adapters: AdapterRegistry, probe: ProbeResult) -> CommandResult:
    run = spec.desired["run"]
    # One command as a string, or a list of commands (strings or argv lists)
    if isinstance(run, str):
        run = [run]
    elevated = _elevated(spec)
    return run_steps(
        (lambda argv=argv_of(cmd): adapters.executor.run(argv, elevated=elevated)) for cmd in run
    )
