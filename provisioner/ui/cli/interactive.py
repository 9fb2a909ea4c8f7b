"""
Console observers for ``apply``.

ProgressObserver prints each outcome as it is recorded. The interactive
variant also asks before each new section and after each warning;
answering "no" sets the run's cancel event, so the reconciler stops
before the next resource.
"""

from __future__ import annotations

import threading

import click

from provisioner.core.engine.reconciler import ReconcileObserver
from provisioner.core.models.outcome import ActionOutcome, OutcomeStatus
from provisioner.core.models.plan import PlanEntry
from provisioner.core.models.resource import ResourceSpec
from provisioner.ui.cli.render import render_outcome, section_heading


class ProgressObserver(ReconcileObserver):
    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self._section: str | None = None

    def entry_started(self, entry: PlanEntry) -> None:
        section = entry.spec.section
        if section != self._section:
            self._section = section
            if section:
                section_heading(section)
                self.section_started(section)

    def section_started(self, section: str) -> None:
        pass

    def outcome_recorded(self, spec: ResourceSpec, outcome: ActionOutcome) -> None:
        render_outcome(spec, outcome, verbose=self.verbose)


class InteractiveObserver(ProgressObserver):
    """Confirm at every section start and after every warned resource."""

    def __init__(self, cancel: threading.Event, verbose: bool = False):
        super().__init__(verbose=verbose)
        self.cancel = cancel

    def section_started(self, section: str) -> None:
        if self.cancel.is_set():
            return
        if not click.confirm(f"   Apply '{section}'?", default=True):
            self.cancel.set()

    def outcome_recorded(self, spec: ResourceSpec, outcome: ActionOutcome) -> None:
        super().outcome_recorded(spec, outcome)
        if outcome.status == OutcomeStatus.WARNED and not click.confirm(
            "   Continue despite the warning?", default=True
        ):
            self.cancel.set()
