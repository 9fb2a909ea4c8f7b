"""
Resource probes — read-only checks of current state, one per kind.

A probe answers "does the system already satisfy this spec?" and never
mutates anything. Probes raise ProbeUnavailable when the backend they
need is missing; the planner turns that into an ``unknown`` result.

Existing user data always counts as satisfied: a non-empty directory
is never removed, an existing path is never replaced by a link, an
existing key is never regenerated.
"""

from __future__ import annotations

import os
import shlex
from pathlib import Path
from typing import Any

from provisioner.adapters.desktop.extensions import GnomeExtensionsAdapter
from provisioner.adapters.desktop.gsettings import GSettingsAdapter
from provisioner.adapters.packages.dnf import DnfAdapter
from provisioner.adapters.packages.flatpak import FlatpakAdapter
from provisioner.adapters.packages.repos import RepositoryAdapter
from provisioner.adapters.registry import AdapterRegistry
from provisioner.adapters.shell.command import EXIT_NOT_FOUND
from provisioner.adapters.shell.filesystem import FilesystemAdapter
from provisioner.adapters.system.host import HostAdapter
from provisioner.core.models.outcome import ProbeResult
from provisioner.core.models.resource import ResourceSpec


# ── Payload helpers ─────────────────────────────────────────────


def spec_path(spec: ResourceSpec, field: str = "path") -> Path:
    """Path named by ``field`` in the payload, falling back to identity."""
    raw = spec.desired.get(field) or spec.identity
    return Path(os.path.expanduser(str(raw)))


def spec_list(spec: ResourceSpec, field: str) -> list[str]:
    """A list payload field; a bare string counts as a one-item list."""
    value: Any = spec.desired.get(field)
    if value is None:
        return [spec.identity]
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def argv_of(command: Any) -> list[str]:
    """Accept a command as an argv list or a shell-style string."""
    if isinstance(command, str):
        return shlex.split(command)
    return [str(a) for a in command]


def _fs(adapters: AdapterRegistry) -> FilesystemAdapter:
    return adapters.require("filesystem", FilesystemAdapter)


# ── Filesystem ──────────────────────────────────────────────────


def probe_directory(spec: ResourceSpec, adapters: AdapterRegistry) -> ProbeResult:
    path = spec_path(spec)
    fs = _fs(adapters)
    if fs.is_dir(path):
        return ProbeResult.ok(f"{path} exists")
    if fs.exists(path):
        return ProbeResult.drift(f"{path} exists but is not a directory")
    return ProbeResult.drift(f"{path} is missing")


def probe_removed_directory(spec: ResourceSpec, adapters: AdapterRegistry) -> ProbeResult:
    path = spec_path(spec)
    fs = _fs(adapters)
    if not fs.exists(path):
        return ProbeResult.ok(f"{path} is absent")
    if not fs.is_dir(path):
        return ProbeResult.ok(f"{path} is not a directory, left in place", preserved=True)
    if not fs.is_empty(path):
        return ProbeResult.ok(f"{path} is not empty, left in place", preserved=True)
    return ProbeResult.drift(f"{path} is empty and will be removed")


def probe_symbolic_link(spec: ResourceSpec, adapters: AdapterRegistry) -> ProbeResult:
    link = spec_path(spec, "link")
    target = Path(os.path.expanduser(str(spec.desired["target"])))
    if not _fs(adapters).exists(link):
        return ProbeResult.drift(f"{link} is missing")
    if link.is_symlink() and Path(os.readlink(link)) == target:
        return ProbeResult.ok(f"{link} already points to {target}")
    return ProbeResult.ok(f"{link} exists, not overwritten", preserved=True)


def probe_ssh_key(spec: ResourceSpec, adapters: AdapterRegistry) -> ProbeResult:
    key = spec_path(spec)
    pub = key.with_name(key.name + ".pub")
    fs = _fs(adapters)
    for candidate in (key, pub):
        if fs.exists(candidate):
            return ProbeResult.ok(f"{candidate} exists, not overwritten")
    return ProbeResult.drift(f"no key at {key}")


def probe_git_clone(spec: ResourceSpec, adapters: AdapterRegistry) -> ProbeResult:
    dest = spec_path(spec, "dest")
    fs = _fs(adapters)
    if fs.is_dir(dest) and not fs.is_empty(dest):
        return ProbeResult.ok(f"{dest} already populated")
    return ProbeResult.drift(f"{dest} is missing or empty")


# ── Packages and repositories ───────────────────────────────────


def probe_packages_installed(spec: ResourceSpec, adapters: AdapterRegistry) -> ProbeResult:
    dnf = adapters.require("dnf", DnfAdapter)
    missing = [p for p in spec_list(spec, "packages") if not dnf.is_installed(p)]
    if missing:
        return ProbeResult.drift(f"not installed: {', '.join(missing)}", missing=missing)
    return ProbeResult.ok("all installed")


def probe_packages_removed(spec: ResourceSpec, adapters: AdapterRegistry) -> ProbeResult:
    dnf = adapters.require("dnf", DnfAdapter)
    present = [p for p in spec_list(spec, "packages") if dnf.is_installed(p)]
    if present:
        return ProbeResult.drift(f"still installed: {', '.join(present)}", present=present)
    return ProbeResult.ok("none installed")


def probe_package_group(spec: ResourceSpec, adapters: AdapterRegistry) -> ProbeResult:
    group = str(spec.desired.get("group", spec.identity))
    if adapters.require("dnf", DnfAdapter).group_installed(group):
        return ProbeResult.ok(f"group {group} installed")
    return ProbeResult.drift(f"group {group} not installed")


def probe_repository(spec: ResourceSpec, adapters: AdapterRegistry) -> ProbeResult:
    repo_type = spec.desired.get("type", "repo_file")
    repos = adapters.require("repos", RepositoryAdapter)
    if repos.is_registered(spec.identity, repo_type, packages=spec_list(spec, "packages")):
        return ProbeResult.ok(f"{repo_type} {spec.identity} registered")
    return ProbeResult.drift(f"{repo_type} {spec.identity} not registered")


def probe_apps_installed(spec: ResourceSpec, adapters: AdapterRegistry) -> ProbeResult:
    flatpak = adapters.require("flatpak", FlatpakAdapter)
    missing = [a for a in spec_list(spec, "apps") if not flatpak.is_installed(a)]
    if missing:
        return ProbeResult.drift(f"not installed: {', '.join(missing)}", missing=missing)
    return ProbeResult.ok("all installed")


def probe_system_upgraded(spec: ResourceSpec, adapters: AdapterRegistry) -> ProbeResult:
    manager = spec.desired.get("manager", spec.identity)
    if manager == "dnf":
        pending = adapters.require("dnf", DnfAdapter).list_upgradable()
    elif manager == "flatpak":
        pending = adapters.require("flatpak", FlatpakAdapter).list_updates()
    else:
        raise ValueError(f"Unknown package manager: {manager}")
    if pending:
        return ProbeResult.drift(f"{len(pending)} update(s) pending", pending=pending)
    return ProbeResult.ok("up to date")


# ── Desktop ─────────────────────────────────────────────────────


def probe_desktop_setting(spec: ResourceSpec, adapters: AdapterRegistry) -> ProbeResult:
    schema = spec.desired["schema"]
    key = spec.desired["key"]
    settings = adapters.require("gsettings", GSettingsAdapter)
    # A missing schema is "cannot verify", not a value mismatch
    if not settings.is_writable(schema, key):
        return ProbeResult.unavailable(f"{schema} {key} is not available on this system")
    if settings.matches(schema, key, spec.desired["value"]):
        return ProbeResult.ok(f"{schema} {key} already set")
    return ProbeResult.drift(f"{schema} {key} = {settings.get(schema, key)}")


def probe_extension(spec: ResourceSpec, adapters: AdapterRegistry) -> ProbeResult:
    uuid = spec.desired.get("uuid", spec.identity)
    if adapters.require("gnome-extensions", GnomeExtensionsAdapter).is_enabled(uuid):
        return ProbeResult.ok(f"{uuid} enabled")
    return ProbeResult.drift(f"{uuid} not enabled")


# ── System ──────────────────────────────────────────────────────


def probe_hostname(spec: ResourceSpec, adapters: AdapterRegistry) -> ProbeResult:
    wanted = str(spec.desired.get("name", spec.identity))
    current = adapters.require("hostnamectl", HostAdapter).current_hostname()
    if current == wanted:
        return ProbeResult.ok(f"hostname is {wanted}")
    return ProbeResult.drift(f"hostname is {current!r}")


def probe_command(spec: ResourceSpec, adapters: AdapterRegistry) -> ProbeResult:
    creates = spec.desired.get("creates")
    if creates and _fs(adapters).exists(os.path.expanduser(str(creates))):
        return ProbeResult.ok(f"{creates} exists")

    unless = spec.desired.get("unless")
    if unless:
        result = adapters.executor.run(argv_of(unless), mutating=False)
        if result.exit_code == EXIT_NOT_FOUND:
            return ProbeResult.unavailable(result.error_summary)
        if result.ok:
            return ProbeResult.ok("guard command succeeded")
        return ProbeResult.drift("guard command failed")

    return ProbeResult.drift("no guard; always runs")
