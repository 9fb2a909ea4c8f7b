"""
Tests for the reconciler — ordering, failure policies, idempotence,
cancellation and dry runs.
"""

import json
import threading
from pathlib import Path

import pytest

from provisioner.adapters.mock import MockExecutor
from provisioner.adapters.registry import AdapterRegistry, default_registry
from provisioner.core.engine import ReconcileObserver, Reconciler, default_catalog
from provisioner.core.errors import ConfigurationError
from provisioner.core.models import (
    FailurePolicy,
    OutcomeStatus,
    ResourceKind,
    ResourceSpec,
    RunStatus,
)

K = ResourceKind
S = OutcomeStatus


def spec(kind, identity, policy=None, section="", **desired) -> ResourceSpec:
    return ResourceSpec(
        kind=kind, identity=identity, desired=desired, failure_policy=policy, section=section
    )


def package(name: str, policy=None) -> ResourceSpec:
    return spec(K.PACKAGE_INSTALLED, name, policy=policy, packages=[name])


# ── Validation ───────────────────────────────────────────────────────


class TestValidation:
    def test_duplicate_identity_rejected_before_any_probe(
        self, registry: AdapterRegistry, executor: MockExecutor
    ):
        specs = [package("git"), package("vim"), package("git")]
        with pytest.raises(ConfigurationError, match="Duplicate"):
            Reconciler(registry).run(specs)
        assert executor.calls == []

    def test_same_identity_different_kind_allowed(self, registry: AdapterRegistry, system):
        specs = [package("git"), spec(K.PACKAGE_REMOVED, "git", packages=["git"])]
        Reconciler(registry).plan(specs)

    def test_missing_required_field(self, registry: AdapterRegistry):
        with pytest.raises(ConfigurationError, match="target"):
            Reconciler(registry).plan([spec(K.SYMBOLIC_LINK, "/tmp/l")])

    def test_bad_choice(self, registry: AdapterRegistry):
        bad = spec(K.REPOSITORY_ENABLED, "x", type="zypper")
        with pytest.raises(ConfigurationError, match="type must be one of"):
            Reconciler(registry).plan([bad])

    def test_default_policies(self):
        catalog = default_catalog()
        assert catalog.policy_for(package("git")) == FailurePolicy.FATAL
        assert catalog.policy_for(spec(K.DIRECTORY, "/x")) == FailurePolicy.WARN_CONTINUE
        setting = spec(K.DESKTOP_SETTING, "a b", schema="a", key="b", value="c")
        assert catalog.policy_for(setting) == FailurePolicy.SKIP_IF_UNSUPPORTED
        assert catalog.policy_for(package("git", FailurePolicy.WARN_CONTINUE)) == (
            FailurePolicy.WARN_CONTINUE
        )

    def test_every_kind_has_an_entry(self):
        catalog = default_catalog()
        assert all(kind in catalog for kind in ResourceKind)


# ── Ordering and failure policies ────────────────────────────────────


class TestFailurePolicies:
    def test_fatal_failure_aborts_run(
        self, registry: AdapterRegistry, system, executor: MockExecutor, tmp_path: Path
    ):
        system.fail_install.add("bar")
        scripts = tmp_path / "scripts"
        specs = [
            spec(K.DIRECTORY, str(scripts)),
            package("foo"),
            package("bar", FailurePolicy.FATAL),
            package("baz"),
            spec(K.DIRECTORY, str(tmp_path / "after")),
        ]

        report = Reconciler(registry).run(specs)

        assert [r.outcome.status for r in report.records] == [S.APPLIED, S.APPLIED, S.FAILED]
        assert report.status == RunStatus.ABORTED
        assert report.not_attempted == [
            "package_installed:baz",
            f"directory:{tmp_path / 'after'}",
        ]
        assert "bar" in report.abort_reason
        assert not executor.called(["dnf", "install", "-y", "baz"])
        assert not (tmp_path / "after").exists()
        assert report.outcome_for("package_installed:bar").exit_code == 1

    def test_warn_continue_does_not_stop(
        self, registry: AdapterRegistry, system, tmp_path: Path
    ):
        system.fail_install.add("flaky")
        specs = [
            package("flaky", FailurePolicy.WARN_CONTINUE),
            spec(K.DIRECTORY, str(tmp_path / "later")),
        ]

        report = Reconciler(registry).run(specs)

        assert [r.outcome.status for r in report.records] == [S.WARNED, S.APPLIED]
        assert report.status == RunStatus.COMPLETED_WITH_WARNINGS
        assert report.ok
        assert "Unable to find a match" in report.records[0].outcome.message
        assert (tmp_path / "later").is_dir()

    def test_non_empty_removed_directory_is_skipped(
        self, registry: AdapterRegistry, system, executor: MockExecutor, tmp_path: Path
    ):
        templates = tmp_path / "Templates"
        templates.mkdir()
        (templates / "letter.odt").write_text("keep me")

        report = Reconciler(registry).run([spec(K.REMOVED_DIRECTORY, str(templates))])

        outcome = report.records[0].outcome
        assert outcome.status == S.SKIPPED_ALREADY_SATISFIED
        assert "not empty" in outcome.message
        assert not executor.called(["rmdir"])
        assert templates.is_dir()

    def test_empty_removed_directory_is_removed(
        self, registry: AdapterRegistry, system, tmp_path: Path
    ):
        public = tmp_path / "Public"
        public.mkdir()
        report = Reconciler(registry).run([spec(K.REMOVED_DIRECTORY, str(public))])
        assert report.records[0].outcome.status == S.APPLIED
        assert not public.exists()

    def test_missing_schema_skipped_unsupported(
        self, registry: AdapterRegistry, executor: MockExecutor
    ):
        executor.respond(["gsettings", "writable"], exit_code=1, stderr="No such schema")
        setting = spec(
            K.DESKTOP_SETTING,
            "org.gnome.shell.extensions.dash-to-dock dock-position",
            schema="org.gnome.shell.extensions.dash-to-dock",
            key="dock-position",
            value="BOTTOM",
        )

        reconciler = Reconciler(registry)
        plan = reconciler.plan([setting])
        assert plan.entries[0].probe.unknown

        report = reconciler.apply(plan)
        assert report.records[0].outcome.status == S.SKIPPED_UNSUPPORTED
        assert not executor.called(["gsettings", "set"])

    def test_unknown_probe_under_warn_continue_still_attempts(
        self, registry: AdapterRegistry, executor: MockExecutor
    ):
        executor.respond(["gnome-extensions", "list"], exit_code=1, stderr="no session")
        executor.respond(["gnome-extensions", "enable"], exit_code=2, stderr="Extension does not exist")
        ext = spec(K.EXTENSION_ENABLED, "a@b", policy=FailurePolicy.WARN_CONTINUE)

        report = Reconciler(registry).run([ext])

        assert report.records[0].outcome.status == S.WARNED
        assert executor.called(["gnome-extensions", "enable", "a@b"])

    def test_unexpected_exception_is_classified(self, registry: AdapterRegistry):
        # release_package with neither url nor urls raises KeyError inside apply
        repo = spec(K.REPOSITORY_ENABLED, "broken", type="release_package", packages=["nope"])
        registry.executor.respond(["rpm", "-q", "--quiet", "nope"], exit_code=1)

        report = Reconciler(registry).run([repo])

        outcome = report.records[0].outcome
        assert outcome.status == S.FAILED
        assert outcome.message.startswith("Unexpected error")

    def test_probe_exception_becomes_unknown(self, registry: AdapterRegistry, executor: MockExecutor):
        executor.respond(["dnf", "check-update"], exit_code=1, stderr="Curl error")
        upgrade = spec(K.SYSTEM_UPGRADED, "dnf", manager="dnf")
        plan = Reconciler(registry).plan([upgrade])
        assert plan.entries[0].probe.unknown
        assert "Curl error" in plan.entries[0].probe.reason


# ── Idempotence ──────────────────────────────────────────────────────


class TestIdempotence:
    def _five(self, tmp_path: Path) -> list[ResourceSpec]:
        target = tmp_path / "projects"
        return [
            spec(K.DIRECTORY, str(tmp_path / "scripts")),
            spec(K.DIRECTORY, str(target)),
            spec(K.SYMBOLIC_LINK, str(tmp_path / "Desktop" / "projects"), target=str(target)),
            package("git"),
            spec(K.PACKAGE_REMOVED, "gnome-tour", packages=["gnome-tour"]),
        ]

    def test_second_run_applies_nothing(
        self, registry: AdapterRegistry, system, executor: MockExecutor, tmp_path: Path
    ):
        system.installed.add("gnome-tour")
        specs = self._five(tmp_path)

        first = Reconciler(registry).run(specs)
        assert first.applied == 5
        assert (tmp_path / "Desktop" / "projects").is_symlink()
        assert system.installed == {"git"}

        executor.calls.clear()
        second = Reconciler(registry).run(specs)
        assert second.applied == 0
        assert second.counts[S.SKIPPED_ALREADY_SATISFIED.value] == 5
        assert executor.mutating_calls == []

    def test_plan_after_apply_is_all_satisfied(
        self, registry: AdapterRegistry, system, tmp_path: Path
    ):
        specs = self._five(tmp_path)
        Reconciler(registry).run(specs)
        assert Reconciler(registry).plan(specs).pending == []


# ── Cancellation, observers, dry run ─────────────────────────────────


class TestCancellation:
    def test_cancel_before_start(self, registry: AdapterRegistry, system, tmp_path: Path):
        cancel = threading.Event()
        cancel.set()
        specs = [spec(K.DIRECTORY, str(tmp_path / "a")), spec(K.DIRECTORY, str(tmp_path / "b"))]

        report = Reconciler(registry, cancel=cancel).run(specs)

        assert report.total == 0
        assert report.abort_reason == "cancelled"
        assert len(report.not_attempted) == 2

    def test_observer_cancels_between_resources(
        self, registry: AdapterRegistry, system, tmp_path: Path
    ):
        cancel = threading.Event()

        class StopAfterFirst(ReconcileObserver):
            def outcome_recorded(self, spec, outcome):
                cancel.set()

        specs = [spec(K.DIRECTORY, str(tmp_path / "a")), spec(K.DIRECTORY, str(tmp_path / "b"))]
        report = Reconciler(registry, cancel=cancel, observer=StopAfterFirst()).run(specs)

        assert report.total == 1
        assert report.status == RunStatus.ABORTED
        assert report.not_attempted == [f"directory:{tmp_path / 'b'}"]
        assert not (tmp_path / "b").exists()


class TestDryRun:
    def test_dry_run_probes_but_does_not_mutate(self, make_system, tmp_path: Path):
        executor = MockExecutor(dry_run=True)
        make_system(executor)
        registry = default_registry(executor)
        specs = [spec(K.DIRECTORY, str(tmp_path / "a")), package("git")]

        report = Reconciler(registry).run(specs)

        assert report.dry_run
        assert report.applied == 2
        assert all(r.outcome.dry_run for r in report.records)
        assert executor.called(["rpm", "-q", "--quiet", "git"])
        assert not (tmp_path / "a").exists()

    def test_outcome_lists_commands(self, registry: AdapterRegistry, system):
        report = Reconciler(registry).run([package("git")])
        assert report.records[0].outcome.commands == ["dnf install -y git"]

    def test_passphrase_never_reaches_the_report(
        self, registry: AdapterRegistry, system, tmp_path: Path, monkeypatch
    ):
        monkeypatch.setenv("KEY_PASS", "hunter2-secret")
        key = tmp_path / ".ssh" / "id_ed25519"
        ssh_key = spec(K.SSH_KEY_PRESENT, str(key), path=str(key), passphrase_env="KEY_PASS")

        report = Reconciler(registry).run([ssh_key])

        assert report.applied == 1
        assert "hunter2-secret" not in json.dumps(report.to_dict())
        assert any("-N '******'" in c for c in report.records[0].outcome.commands)


# ── Flatpak installation scope ───────────────────────────────────────


class TestFlatpakScope:
    def test_user_installation_remote_and_apps_agree(self, executor: MockExecutor):
        executor.respond(["flatpak", "info"], exit_code=1)
        registry = default_registry(executor, flatpak_installation="user")
        specs = [
            spec(
                K.REPOSITORY_ENABLED,
                "flathub",
                type="flatpak_remote",
                url="https://flathub.org/repo/flathub.flatpakrepo",
            ),
            spec(K.APP_PACKAGE_INSTALLED, "org.x.Y", apps=["org.x.Y"]),
        ]

        report = Reconciler(registry).run(specs)

        assert report.applied == 2
        remote_add, install = executor.mutating_calls
        assert remote_add.argv[:3] == ["flatpak", "remote-add", "--user"]
        assert install.argv[:3] == ["flatpak", "install", "--user"]
        assert not remote_add.elevated
        assert executor.called(["flatpak", "remotes", "--user"])
