"""
Shared test fixtures and configuration.

Nothing here touches the real system: external commands go through a
MockExecutor, and filesystem resources live under tmp_path.
"""

from pathlib import Path

import pytest

from provisioner.adapters.mock import MockExecutor
from provisioner.adapters.registry import AdapterRegistry, default_registry
from provisioner.adapters.shell.command import CommandResult


class FakeSystem:
    """A tiny stateful Fedora behind a MockExecutor.

    Tracks installed RPMs and answers rpm/dnf queries from that set;
    mkdir, rmdir and ln really run against the (temporary) filesystem so
    a second run observes the first one's effects.
    """

    def __init__(self, executor: MockExecutor, installed: set[str] | None = None):
        self.executor = executor
        self.installed: set[str] = set(installed or ())
        self.fail_install: set[str] = set()

        executor.on(["rpm", "-q", "--quiet"], self._rpm_query)
        executor.on(["dnf", "install", "-y"], self._dnf_install)
        executor.on(["dnf", "remove", "-y"], self._dnf_remove)
        executor.on(["mkdir"], self._mkdir)
        executor.on(["rmdir"], self._rmdir)
        executor.on(["ln", "-s"], self._ln)

    def _rpm_query(self, argv: list[str]) -> CommandResult:
        return CommandResult.synthetic(argv, exit_code=0 if argv[-1] in self.installed else 1)

    def _dnf_install(self, argv: list[str]) -> CommandResult:
        packages = argv[3:]
        broken = [p for p in packages if p in self.fail_install]
        if broken:
            return CommandResult.synthetic(
                argv, exit_code=1, stderr=f"Error: Unable to find a match: {' '.join(broken)}"
            )
        self.installed.update(packages)
        return CommandResult.synthetic(argv)

    def _dnf_remove(self, argv: list[str]) -> CommandResult:
        self.installed.difference_update(argv[3:])
        return CommandResult.synthetic(argv)

    def _mkdir(self, argv: list[str]) -> CommandResult:
        Path(argv[-1]).mkdir(parents=True, exist_ok=True)
        return CommandResult.synthetic(argv)

    def _rmdir(self, argv: list[str]) -> CommandResult:
        try:
            Path(argv[-1]).rmdir()
        except OSError as e:
            return CommandResult.synthetic(argv, exit_code=1, stderr=f"rmdir: {e}")
        return CommandResult.synthetic(argv)

    def _ln(self, argv: list[str]) -> CommandResult:
        Path(argv[-1]).symlink_to(argv[-2])
        return CommandResult.synthetic(argv)


@pytest.fixture
def executor() -> MockExecutor:
    """A mock executor where every unscripted command succeeds."""
    return MockExecutor()


@pytest.fixture
def registry(executor: MockExecutor, tmp_path: Path) -> AdapterRegistry:
    """Every built-in adapter, bound to the mock executor."""
    repos_dir = tmp_path / "yum.repos.d"
    repos_dir.mkdir()
    return default_registry(executor, repos_dir=str(repos_dir))


@pytest.fixture
def system(executor: MockExecutor) -> FakeSystem:
    """A stateful fake system wired into the mock executor."""
    return FakeSystem(executor)


@pytest.fixture
def make_system():
    """Build a FakeSystem around an executor of the test's choosing."""
    return FakeSystem
