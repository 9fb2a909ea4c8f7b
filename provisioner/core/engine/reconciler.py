"""
Reconciler — the plan-then-apply loop.

The reconciler takes an ordered list of ResourceSpecs, probes all of
them, then walks the resulting plan in declaration order applying only
what is not already satisfied. It is strictly sequential and keeps no
state between runs: idempotence comes from probing again.

Flow:
    validate → probe every spec (RunPlan) → apply in order → RunReport

Per resource:
    pending → satisfied (skip) | unsatisfied | unknown
            → applied | warned | failed | skipped_unsupported

A failure under the ``fatal`` policy ends the run; everything after it
is listed as not attempted. Cancellation is checked between resources,
never in the middle of one.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

from provisioner.adapters.registry import AdapterRegistry
from provisioner.adapters.shell.command import CommandResult
from provisioner.core.engine.catalog import ActionCatalog, default_catalog
from provisioner.core.errors import ApplyFailed, ConfigurationError, ProbeUnavailable
from provisioner.core.models.outcome import ActionOutcome, OutcomeStatus, ProbeResult
from provisioner.core.models.plan import PlanEntry, RunPlan
from provisioner.core.models.report import RunReport
from provisioner.core.models.resource import FailurePolicy, ResourceSpec

logger = logging.getLogger(__name__)

_MARKERS = {
    OutcomeStatus.APPLIED: "✓",
    OutcomeStatus.SKIPPED_ALREADY_SATISFIED: "=",
    OutcomeStatus.SKIPPED_UNSUPPORTED: "⊘",
    OutcomeStatus.WARNED: "!",
    OutcomeStatus.FAILED: "✗",
}


class ReconcileObserver:
    """Hooks for whoever wraps the engine (progress output, prompts).

    The default implementation does nothing. An interactive layer can
    set the run's cancel event from either hook to stop before the next
    resource.
    """

    def entry_started(self, entry: PlanEntry) -> None:
        pass

    def outcome_recorded(self, spec: ResourceSpec, outcome: ActionOutcome) -> None:
        pass


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    return f"run-{now}-{uuid.uuid4().hex[:6]}"


def validate_specs(specs: Sequence[ResourceSpec], catalog: ActionCatalog) -> None:
    """Reject a resource list before anything is probed.

    Raises:
        ConfigurationError: Unknown kind, malformed payload, or a
            ``(kind, identity)`` pair declared twice.
    """
    seen: dict[tuple[str, str], int] = {}
    for position, spec in enumerate(specs):
        catalog.validate(spec)
        if spec.key in seen:
            raise ConfigurationError(
                f"Duplicate resource {spec.label} at positions {seen[spec.key]} and {position}"
            )
        seen[spec.key] = position


class Reconciler:
    """Converge a workstation towards a list of ResourceSpecs.

    Args:
        adapters: Registry of external-system bindings.
        catalog: Kind table (default: every built-in kind).
        cancel: Event checked between resources; when set the run
            aborts with reason "cancelled".
        observer: Optional progress/interaction hooks.
    """

    def __init__(
        self,
        adapters: AdapterRegistry,
        catalog: ActionCatalog | None = None,
        cancel: threading.Event | None = None,
        observer: ReconcileObserver | None = None,
    ):
        self.adapters = adapters
        self.catalog = catalog or default_catalog()
        self.cancel = cancel or threading.Event()
        self.observer = observer or ReconcileObserver()

    # ── Planning ────────────────────────────────────────────────

    def probe(self, spec: ResourceSpec) -> ProbeResult:
        """Probe one spec. Never raises: failures become ``unknown``."""
        entry = self.catalog.get(spec.kind)
        try:
            return entry.probe(spec, self.adapters)
        except ProbeUnavailable as e:
            logger.debug("Probe for %s unavailable: %s", spec.label, e)
            return ProbeResult.unavailable(str(e))
        except Exception as e:
            logger.exception("Probe for %s raised", spec.label)
            return ProbeResult.unavailable(f"probe error: {e}")

    def plan(self, specs: Sequence[ResourceSpec], run_id: str | None = None) -> RunPlan:
        """Validate and probe every spec in declared order.

        Raises:
            ConfigurationError: The list is invalid; nothing was probed.
        """
        validate_specs(specs, self.catalog)
        entries = []
        for position, spec in enumerate(specs):
            result = self.probe(spec)
            logger.debug("Probe %s → %s (%s)", spec.label, result.status, result.reason)
            entries.append(PlanEntry(spec=spec, probe=result, position=position))
        return RunPlan(run_id=run_id or generate_run_id(), entries=tuple(entries))

    # ── Applying ────────────────────────────────────────────────

    def apply(self, plan: RunPlan, document: str = "") -> RunReport:
        """Walk a plan in order and record one outcome per entry."""
        report = RunReport(
            run_id=plan.run_id,
            document=document,
            dry_run=self.adapters.executor.dry_run,
        )
        entries = list(plan)

        for index, entry in enumerate(entries):
            self.observer.entry_started(entry)
            if self.cancel.is_set():
                report.abort("cancelled", [e.spec for e in entries[index:]])
                logger.warning("Run %s cancelled before %s", plan.run_id, entry.spec.label)
                break

            outcome = self._reconcile_entry(entry)
            report.record(entry.spec, outcome)
            logger.info(
                "%s %s → %s%s",
                _MARKERS[outcome.status],
                entry.spec.label,
                outcome.status.value,
                f" ({outcome.message})" if outcome.message else "",
            )
            self.observer.outcome_recorded(entry.spec, outcome)

            if outcome.failed:
                report.abort(
                    f"{entry.spec.label} failed: {outcome.message}",
                    [e.spec for e in entries[index + 1:]],
                )
                break

        report.finish()
        return report

    def run(self, specs: Sequence[ResourceSpec], document: str = "") -> RunReport:
        """Plan then apply.

        Raises:
            ConfigurationError: Before any probe or mutation.
        """
        return self.apply(self.plan(specs), document=document)

    def _reconcile_entry(self, entry: PlanEntry) -> ActionOutcome:
        spec, probe = entry.spec, entry.probe
        policy = self.catalog.policy_for(spec)

        if probe.satisfied:
            return ActionOutcome.already_satisfied(probe.reason)

        if probe.unknown and policy == FailurePolicy.SKIP_IF_UNSUPPORTED:
            return ActionOutcome.unsupported(probe.reason)

        history = self.adapters.executor.history
        first_command = len(history)
        start = time.monotonic()

        result: CommandResult | None = None
        error: str | None = None
        try:
            result = self.catalog.get(spec.kind).apply(spec, self.adapters, probe)
        except ApplyFailed as e:
            result = e.result
            error = str(e)
        except Exception as e:
            logger.exception("Apply for %s raised", spec.label)
            error = f"Unexpected error: {e}"

        ran = history[first_command:]
        details = {
            "commands": [r.command_line for r in ran],
            "exit_code": result.exit_code if result is not None else None,
            "dry_run": any(r.dry_run for r in ran),
            "duration_ms": int((time.monotonic() - start) * 1000),
        }

        if error is None and result is not None and result.ok:
            return ActionOutcome.applied(probe.reason, **details)

        message = error or (result.error_summary if result is not None else "apply failed")
        if policy == FailurePolicy.FATAL:
            return ActionOutcome.failure(message, **details)
        return ActionOutcome.warned(message, **details)
