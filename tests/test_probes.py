"""
Tests for resource probes and apply actions, one kind at a time.
"""

from pathlib import Path

import pytest

from provisioner.adapters.mock import MockExecutor
from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.engine import actions, probes
from provisioner.core.errors import ProbeUnavailable
from provisioner.core.models import ProbeResult, ResourceKind, ResourceSpec

K = ResourceKind


def spec(kind: ResourceKind, identity: str, **desired) -> ResourceSpec:
    return ResourceSpec(kind=kind, identity=identity, desired=desired)


# ── Filesystem ───────────────────────────────────────────────────────


class TestDirectoryProbes:
    def test_directory(self, registry: AdapterRegistry, tmp_path: Path):
        target = tmp_path / "scripts"
        s = spec(K.DIRECTORY, str(target), path=str(target))
        assert not probes.probe_directory(s, registry).satisfied
        target.mkdir()
        assert probes.probe_directory(s, registry).satisfied

    def test_directory_blocked_by_file(self, registry: AdapterRegistry, tmp_path: Path):
        target = tmp_path / "scripts"
        target.write_text("")
        result = probes.probe_directory(spec(K.DIRECTORY, str(target)), registry)
        assert not result.satisfied
        assert "not a directory" in result.reason

    def test_removed_directory_states(self, registry: AdapterRegistry, tmp_path: Path):
        target = tmp_path / "Templates"
        s = spec(K.REMOVED_DIRECTORY, str(target))
        assert probes.probe_removed_directory(s, registry).satisfied  # absent

        target.mkdir()
        assert not probes.probe_removed_directory(s, registry).satisfied  # empty

        (target / "keep.txt").write_text("data")
        result = probes.probe_removed_directory(s, registry)
        assert result.satisfied
        assert result.details["preserved"] is True
        assert "not empty" in result.reason

    def test_symbolic_link(self, registry: AdapterRegistry, tmp_path: Path):
        target = tmp_path / "target"
        target.mkdir()
        link = tmp_path / "link"
        s = spec(K.SYMBOLIC_LINK, str(link), link=str(link), target=str(target))
        assert not probes.probe_symbolic_link(s, registry).satisfied

        link.symlink_to(target)
        assert probes.probe_symbolic_link(s, registry).satisfied

    def test_symbolic_link_existing_path_preserved(self, registry: AdapterRegistry, tmp_path: Path):
        link = tmp_path / "link"
        link.write_text("user data")
        s = spec(K.SYMBOLIC_LINK, str(link), target=str(tmp_path / "elsewhere"))
        result = probes.probe_symbolic_link(s, registry)
        assert result.satisfied
        assert result.details["preserved"] is True

    def test_ssh_key(self, registry: AdapterRegistry, tmp_path: Path):
        key = tmp_path / ".ssh" / "id_ed25519"
        s = spec(K.SSH_KEY_PRESENT, str(key), path=str(key))
        assert not probes.probe_ssh_key(s, registry).satisfied
        key.parent.mkdir()
        (key.parent / "id_ed25519.pub").write_text("ssh-ed25519 AAAA")
        assert probes.probe_ssh_key(s, registry).satisfied

    def test_git_clone(self, registry: AdapterRegistry, tmp_path: Path):
        dest = tmp_path / "dotfiles"
        s = spec(K.GIT_REPO_CLONED, str(dest), url="https://x/dotfiles.git", dest=str(dest))
        dest.mkdir()
        assert not probes.probe_git_clone(s, registry).satisfied
        (dest / ".git").mkdir()
        assert probes.probe_git_clone(s, registry).satisfied


class TestFilesystemActions:
    def test_ssh_key_creates_private_dir_first(
        self, registry: AdapterRegistry, executor: MockExecutor, tmp_path: Path, monkeypatch
    ):
        monkeypatch.setenv("KEY_PASS", "s3cret")
        key = tmp_path / ".ssh" / "id_ed25519"
        s = spec(K.SSH_KEY_PRESENT, str(key), path=str(key), comment="me", passphrase_env="KEY_PASS")
        result = actions.apply_ssh_key(s, registry, ProbeResult.drift())
        assert result.ok
        assert executor.calls[0].argv == ["mkdir", "-p", "-m", "700", str(key.parent)]
        keygen = executor.calls[1].argv
        assert keygen[keygen.index("-N") + 1] == "s3cret"
        # ssh-keygen receives the passphrase; nothing recorded keeps it
        assert "s3cret" not in result.command_line
        assert all("s3cret" not in r.command_line for r in executor.history)

    def test_ssh_key_stops_when_mkdir_fails(
        self, registry: AdapterRegistry, executor: MockExecutor, tmp_path: Path
    ):
        executor.respond(["mkdir"], exit_code=1, stderr="mkdir: Permission denied")
        key = tmp_path / ".ssh" / "id_ed25519"
        result = actions.apply_ssh_key(spec(K.SSH_KEY_PRESENT, str(key)), registry, ProbeResult.drift())
        assert not result.ok
        assert not executor.called(["ssh-keygen"])


# ── Packages ─────────────────────────────────────────────────────────


class TestPackageProbes:
    def test_only_missing_packages_installed(self, registry: AdapterRegistry, executor: MockExecutor):
        executor.respond(["rpm", "-q", "--quiet", "neovim"], exit_code=1)
        s = spec(K.PACKAGE_INSTALLED, "git,neovim", packages=["git", "neovim"])
        result = probes.probe_packages_installed(s, registry)
        assert result.details["missing"] == ["neovim"]

        actions.apply_packages_installed(s, registry, result)
        assert executor.calls[-1].argv == ["dnf", "install", "-y", "neovim"]

    def test_only_present_packages_removed(self, registry: AdapterRegistry, executor: MockExecutor):
        executor.respond(["rpm", "-q", "--quiet", "rhythmbox"], exit_code=1)
        s = spec(K.PACKAGE_REMOVED, "gnome-tour,rhythmbox", packages=["gnome-tour", "rhythmbox"])
        result = probes.probe_packages_removed(s, registry)
        assert result.details["present"] == ["gnome-tour"]

        actions.apply_packages_removed(s, registry, result)
        assert executor.calls[-1].argv == ["dnf", "remove", "-y", "gnome-tour"]

    def test_repository(self, registry: AdapterRegistry, tmp_path: Path):
        s = spec(K.REPOSITORY_ENABLED, "vscode", type="repo_file", baseurl="https://x")
        assert not probes.probe_repository(s, registry).satisfied
        (tmp_path / "yum.repos.d" / "vscode.repo").write_text("[vscode]\n")
        assert probes.probe_repository(s, registry).satisfied

    def test_apps(self, registry: AdapterRegistry, executor: MockExecutor):
        executor.respond(["flatpak", "info", "--system", "com.spotify.Client"], exit_code=1)
        s = spec(K.APP_PACKAGE_INSTALLED, "x", apps=["org.signal.Signal", "com.spotify.Client"])
        result = probes.probe_apps_installed(s, registry)
        assert result.details["missing"] == ["com.spotify.Client"]
        actions.apply_apps_installed(s, registry, result)
        assert executor.calls[-1].argv[-1] == "com.spotify.Client"

    def test_system_upgraded(self, registry: AdapterRegistry, executor: MockExecutor):
        executor.respond(
            ["dnf", "check-update"], exit_code=100, stdout="kernel.x86_64  6.9  updates\n"
        )
        s = spec(K.SYSTEM_UPGRADED, "dnf", manager="dnf", autoremove=True)
        result = probes.probe_system_upgraded(s, registry)
        assert result.details["pending"] == ["kernel"]

        actions.apply_system_upgraded(s, registry, result)
        assert executor.calls[-2].argv == ["dnf", "upgrade", "-y", "--refresh"]
        assert executor.calls[-1].argv == ["dnf", "autoremove", "-y"]

    def test_system_upgraded_up_to_date(self, registry: AdapterRegistry, executor: MockExecutor):
        executor.respond(["flatpak", "remote-ls"], stdout="")
        s = spec(K.SYSTEM_UPGRADED, "flatpak", manager="flatpak")
        assert probes.probe_system_upgraded(s, registry).satisfied


# ── Desktop and system ───────────────────────────────────────────────


class TestDesktopProbes:
    def test_missing_schema_is_unknown(self, registry: AdapterRegistry, executor: MockExecutor):
        executor.respond(["gsettings", "writable"], exit_code=1, stderr="No such schema")
        s = spec(K.DESKTOP_SETTING, "org.x key", schema="org.x", key="key", value="1")
        assert probes.probe_desktop_setting(s, registry).unknown

    def test_value_drift(self, registry: AdapterRegistry, executor: MockExecutor):
        executor.respond(["gsettings", "writable"], stdout="true\n")
        executor.respond(["gsettings", "get"], stdout="'default'\n")
        s = spec(
            K.DESKTOP_SETTING,
            "org.gnome.desktop.interface color-scheme",
            schema="org.gnome.desktop.interface",
            key="color-scheme",
            value="prefer-dark",
        )
        result = probes.probe_desktop_setting(s, registry)
        assert not result.satisfied and not result.unknown

        executor.respond(["gsettings", "get"], stdout="'prefer-dark'\n")
        assert probes.probe_desktop_setting(s, registry).satisfied

    def test_extension_unavailable_propagates(self, registry: AdapterRegistry, executor: MockExecutor):
        executor.respond(["gnome-extensions", "list"], exit_code=127)
        with pytest.raises(ProbeUnavailable):
            probes.probe_extension(spec(K.EXTENSION_ENABLED, "a@b"), registry)


class TestSystemProbes:
    def test_hostname(self, registry: AdapterRegistry, executor: MockExecutor):
        executor.respond(["hostnamectl", "--static"], stdout="fedora\n")
        s = spec(K.HOSTNAME, "desk", name="desk")
        assert not probes.probe_hostname(s, registry).satisfied
        executor.respond(["hostnamectl", "--static"], stdout="desk\n")
        assert probes.probe_hostname(s, registry).satisfied

    def test_package_group(self, registry: AdapterRegistry, executor: MockExecutor):
        executor.respond(["dnf", "group", "list"], stdout="")
        s = spec(K.PACKAGE_GROUP_INSTALLED, "multimedia", group="multimedia")
        assert not probes.probe_package_group(s, registry).satisfied


class TestCommandKind:
    def test_creates_guard(self, registry: AdapterRegistry, tmp_path: Path):
        marker = tmp_path / "done"
        s = spec(K.COMMAND, "thing", run="touch x", creates=str(marker))
        assert not probes.probe_command(s, registry).satisfied
        marker.write_text("")
        assert probes.probe_command(s, registry).satisfied

    def test_unless_guard_runs_read_only(self, registry: AdapterRegistry, executor: MockExecutor):
        executor.respond(["fc-match"], exit_code=1)
        s = spec(K.COMMAND, "fonts", run="lpf install ms-core-fonts", unless="fc-match Arial")
        assert not probes.probe_command(s, registry).satisfied
        assert executor.calls[-1].mutating is False

    def test_unless_guard_missing_tool_is_unknown(
        self, registry: AdapterRegistry, executor: MockExecutor
    ):
        executor.respond(["fc-match"], exit_code=127, stderr="fc-match: command not found")
        s = spec(K.COMMAND, "fonts", run="true", unless="fc-match Arial")
        assert probes.probe_command(s, registry).unknown

    def test_no_guard_always_runs(self, registry: AdapterRegistry):
        assert not probes.probe_command(spec(K.COMMAND, "x", run="true"), registry).satisfied

    def test_apply_runs_each_command(self, registry: AdapterRegistry, executor: MockExecutor):
        s = spec(
            K.COMMAND, "fonts",
            run=["lpf install ms-core-fonts", ["fc-cache", "-f"]],
            elevated=True,
        )
        result = actions.apply_command(s, registry, ProbeResult.drift())
        assert result.ok
        assert [c.argv for c in executor.calls] == [
            ["lpf", "install", "ms-core-fonts"],
            ["fc-cache", "-f"],
        ]
        assert all(c.elevated for c in executor.calls)

    def test_apply_stops_at_first_failure(self, registry: AdapterRegistry, executor: MockExecutor):
        executor.respond(["first"], exit_code=2)
        s = spec(K.COMMAND, "x", run=["first", "second"])
        result = actions.apply_command(s, registry, ProbeResult.drift())
        assert result.exit_code == 2
        assert not executor.called(["second"])
