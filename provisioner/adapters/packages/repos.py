"""
Repository adapter — package sources the system trusts.

A repository is registered one of four ways, chosen by its ``type``:

    release_package   install a release RPM from a URL (RPM Fusion)
    repo_file         import a GPG key and write /etc/yum.repos.d/<id>.repo
    copr              ``dnf copr enable owner/project``
    flatpak_remote    ``flatpak remote-add --if-not-exists``, in the same
                      installation (system or user) the apps go to
"""

from __future__ import annotations

import configparser
import io
import logging
from pathlib import Path
from typing import Any

from provisioner.adapters.base import Adapter
from provisioner.adapters.packages.flatpak import FlatpakAdapter
from provisioner.adapters.shell.command import CommandExecutor, CommandResult
from provisioner.core.errors import ApplyFailed, ProbeUnavailable

logger = logging.getLogger(__name__)

REPOSITORY_TYPES = ("release_package", "repo_file", "copr", "flatpak_remote")

DEFAULT_REPOS_DIR = "/etc/yum.repos.d"


def render_repo_file(repo_id: str, desired: dict[str, Any]) -> str:
    """Render a .repo file section for ``repo_id``.

    Known keys get sensible defaults; anything under ``options`` is
    written verbatim.
    """
    section: dict[str, str] = {
        "name": str(desired.get("name", repo_id)),
        "baseurl": str(desired["baseurl"]),
        "enabled": "1",
        "autorefresh": "1",
        "type": "rpm-md",
    }
    gpgkey = desired.get("gpgkey")
    if gpgkey:
        section["gpgcheck"] = "1"
        section["gpgkey"] = str(gpgkey)
    else:
        section["gpgcheck"] = "0"
    for key, value in (desired.get("options") or {}).items():
        section[str(key)] = str(value)

    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str  # keep key case
    parser[repo_id] = section
    buf = io.StringIO()
    parser.write(buf, space_around_delimiters=False)
    return buf.getvalue()


class RepositoryAdapter(Adapter):
    """Register package repositories and flatpak remotes."""

    tool = "dnf"

    def __init__(
        self,
        executor: CommandExecutor,
        repos_dir: str = DEFAULT_REPOS_DIR,
        flatpak: FlatpakAdapter | None = None,
    ):
        super().__init__(executor)
        self.repos_dir = Path(repos_dir)
        self.flatpak = flatpak or FlatpakAdapter(executor)

    @property
    def name(self) -> str:
        return "repos"

    def repo_file_path(self, repo_id: str) -> Path:
        return self.repos_dir / f"{repo_id}.repo"

    # ── Queries ─────────────────────────────────────────────────

    def is_registered(
        self, identity: str, repo_type: str, packages: list[str] | None = None
    ) -> bool:
        """Whether the repository is already set up.

        ``packages`` names the release RPMs a ``release_package`` repo
        installs; the identity itself is checked when omitted.
        """
        if repo_type == "release_package":
            return all(
                self._query(["rpm", "-q", "--quiet", name]).exit_code == 0
                for name in packages or [identity]
            )

        if repo_type == "repo_file":
            return self.repo_file_path(identity).is_file()

        if repo_type == "copr":
            result = self._query(["dnf", "copr", "list"])
            if not result.ok:
                raise ProbeUnavailable(f"dnf copr list failed: {result.error_summary}")
            # Lines look like "copr.fedorainfracloud.org/owner/project"
            return any(
                line.strip().endswith(identity) and "(disabled)" not in line
                for line in result.stdout.splitlines()
            )

        if repo_type == "flatpak_remote":
            return self.flatpak.has_remote(identity)

        raise ValueError(f"Unknown repository type: {repo_type}")

    # ── Mutations ───────────────────────────────────────────────

    def register(self, identity: str, desired: dict[str, Any]) -> CommandResult:
        """Register a repository.

        Raises:
            ApplyFailed: A preliminary step (key import) failed.
        """
        repo_type = desired.get("type", "repo_file")

        if repo_type == "release_package":
            urls = desired.get("urls") or [desired["url"]]
            return self.executor.run(["dnf", "install", "-y", *urls], elevated=True)

        if repo_type == "repo_file":
            gpgkey = desired.get("gpgkey")
            if gpgkey:
                imported = self.executor.run(["rpm", "--import", str(gpgkey)], elevated=True)
                if not imported.ok:
                    raise ApplyFailed(imported, f"GPG key import failed: {imported.error_summary}")
            content = render_repo_file(identity, desired)
            return self.executor.run(
                ["tee", str(self.repo_file_path(identity))],
                elevated=True,
                input_text=content,
            )

        if repo_type == "copr":
            return self.executor.run(["dnf", "copr", "enable", "-y", identity], elevated=True)

        if repo_type == "flatpak_remote":
            return self.flatpak.add_remote(identity, desired["url"])

        raise ValueError(f"Unknown repository type: {repo_type}")
